import contextlib
import sqlite3
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


_PG_UNIQUE_VIOLATION = "23505"


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection
        self._tx_depth = 0
        self._savepoint_seq = 0

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def executescript(self, sql: str):
        if self.backend != "postgres":
            return self._conn.executescript(sql)
        for statement in _split_sql_statements(sql):
            if statement.strip():
                self.execute(statement)

    @contextlib.contextmanager
    def transaction(self):
        """One atomic unit of work; nested calls join the outer unit."""
        if self._tx_depth > 0:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        if self.backend == "postgres":
            self._conn.autocommit = False
        elif not self._conn.in_transaction:
            self._conn.execute("BEGIN")
        self._tx_depth = 1
        try:
            yield self
            self._conn.commit()
        except BaseException:
            self._conn.rollback()
            raise
        finally:
            self._tx_depth = 0
            if self.backend == "postgres":
                self._conn.autocommit = True

    @contextlib.contextmanager
    def savepoint(self):
        """Roll back only the enclosed statements on failure; must run inside ``transaction()``."""
        if self._tx_depth <= 0:
            raise RuntimeError("savepoint() requires an open transaction.")
        self._savepoint_seq += 1
        name = f"sp_{self._savepoint_seq}"
        self.execute(f"SAVEPOINT {name}")
        try:
            yield self
        except BaseException:
            self.execute(f"ROLLBACK TO SAVEPOINT {name}")
            self.execute(f"RELEASE SAVEPOINT {name}")
            raise
        self.execute(f"RELEASE SAVEPOINT {name}")

    def commit(self):
        if self._tx_depth > 0:
            return
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def is_unique_violation(exc: BaseException) -> bool:
    if isinstance(exc, sqlite3.IntegrityError):
        return "unique" in str(exc).lower()
    if psycopg2 is not None and isinstance(exc, psycopg2.IntegrityError):
        return getattr(exc, "pgcode", None) == _PG_UNIQUE_VIOLATION
    return False


def unique_violation_target(exc: BaseException) -> str:
    """Best-effort name of the column/constraint behind a unique violation."""
    if psycopg2 is not None and isinstance(exc, psycopg2.IntegrityError):
        diag = getattr(exc, "diag", None)
        constraint = getattr(diag, "constraint_name", None) if diag is not None else None
        return str(constraint or exc)
    return str(exc)


def _split_sql_statements(sql: str) -> List[str]:
    statements = []
    current = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            statements.append("".join(current))
            current = []
            i += 1
            continue
        current.append(ch)
        i += 1
    if current:
        statements.append("".join(current))
    return statements


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db(db: Database | None = None):
    db = db or get_db()
    if db.backend == "postgres":
        _init_db_postgres(db)
        return

    _init_db_sqlite(db)
    db.commit()


def _init_db_sqlite(db: Database):
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            first_name TEXT,
            last_name TEXT,
            role TEXT NOT NULL DEFAULT 'requester' CHECK (
                role IN ('requester','finance','admin')
            ),
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            contract_number TEXT NOT NULL UNIQUE,
            start_date TEXT NOT NULL,
            end_date TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS suppliers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            address TEXT NOT NULL,
            email TEXT NOT NULL,
            phone TEXT,
            contact_person TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            supplier_id INTEGER NOT NULL REFERENCES suppliers(id),
            description TEXT NOT NULL,
            unit TEXT NOT NULL DEFAULT 'each',
            unit_price TEXT NOT NULL DEFAULT '0.00',
            vat_type TEXT NOT NULL DEFAULT 'VAT 20%',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS requisitions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requisition_number TEXT NOT NULL UNIQUE,
            project_id INTEGER NOT NULL REFERENCES projects(id),
            supplier_id INTEGER NOT NULL REFERENCES suppliers(id),
            requested_by_id TEXT NOT NULL REFERENCES users(id),
            request_date TEXT NOT NULL,
            delivery_date TEXT NOT NULL,
            delivery_address TEXT NOT NULL,
            delivery_instructions TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (
                status IN ('pending','approved','rejected','cancelled')
            ),
            rejection_reason TEXT,
            decided_by_id TEXT REFERENCES users(id),
            decided_at TEXT,
            total_amount TEXT NOT NULL DEFAULT '0.00',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS requisition_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requisition_id INTEGER NOT NULL REFERENCES requisitions(id),
            line_no INTEGER NOT NULL,
            description TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            unit TEXT NOT NULL,
            unit_price TEXT NOT NULL,
            vat_type TEXT NOT NULL DEFAULT 'VAT 20%',
            total_price TEXT NOT NULL,
            vat_amount TEXT NOT NULL DEFAULT '0.00',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS purchase_orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            po_number TEXT NOT NULL UNIQUE,
            requisition_id INTEGER NOT NULL UNIQUE REFERENCES requisitions(id),
            approved_by_id TEXT NOT NULL REFERENCES users(id),
            issue_date TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'issued' CHECK (
                status IN ('draft','issued','received','cancelled')
            ),
            total_amount TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS status_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity TEXT NOT NULL CHECK (entity IN ('requisition','purchase_order')),
            entity_id INTEGER NOT NULL,
            from_status TEXT,
            to_status TEXT,
            reason TEXT,
            actor_id TEXT,
            occurred_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS delivery_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            channel TEXT NOT NULL,
            recipient TEXT,
            status TEXT NOT NULL CHECK (status IN ('sent','failed')),
            error TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    _create_indexes(db)


def _init_db_postgres(db: Database) -> None:
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            first_name TEXT,
            last_name TEXT,
            role TEXT NOT NULL DEFAULT 'requester' CHECK (
                role IN ('requester','finance','admin')
            ),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS projects (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            contract_number TEXT NOT NULL UNIQUE,
            start_date DATE NOT NULL,
            end_date DATE,
            status TEXT NOT NULL DEFAULT 'active',
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS suppliers (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            address TEXT NOT NULL,
            email TEXT NOT NULL,
            phone TEXT,
            contact_person TEXT,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_items (
            id SERIAL PRIMARY KEY,
            supplier_id INTEGER NOT NULL REFERENCES suppliers(id),
            description TEXT NOT NULL,
            unit TEXT NOT NULL DEFAULT 'each',
            unit_price NUMERIC(12, 2) NOT NULL DEFAULT 0,
            vat_type TEXT NOT NULL DEFAULT 'VAT 20%',
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS requisitions (
            id SERIAL PRIMARY KEY,
            requisition_number TEXT NOT NULL UNIQUE,
            project_id INTEGER NOT NULL REFERENCES projects(id),
            supplier_id INTEGER NOT NULL REFERENCES suppliers(id),
            requested_by_id TEXT NOT NULL REFERENCES users(id),
            request_date DATE NOT NULL,
            delivery_date DATE NOT NULL,
            delivery_address TEXT NOT NULL,
            delivery_instructions TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (
                status IN ('pending','approved','rejected','cancelled')
            ),
            rejection_reason TEXT,
            decided_by_id TEXT REFERENCES users(id),
            decided_at TIMESTAMP,
            total_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS requisition_items (
            id SERIAL PRIMARY KEY,
            requisition_id INTEGER NOT NULL REFERENCES requisitions(id),
            line_no INTEGER NOT NULL,
            description TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK (quantity > 0),
            unit TEXT NOT NULL,
            unit_price NUMERIC(12, 2) NOT NULL,
            vat_type TEXT NOT NULL DEFAULT 'VAT 20%',
            total_price NUMERIC(12, 2) NOT NULL,
            vat_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS purchase_orders (
            id SERIAL PRIMARY KEY,
            po_number TEXT NOT NULL UNIQUE,
            requisition_id INTEGER NOT NULL UNIQUE REFERENCES requisitions(id),
            approved_by_id TEXT NOT NULL REFERENCES users(id),
            issue_date DATE NOT NULL,
            status TEXT NOT NULL DEFAULT 'issued' CHECK (
                status IN ('draft','issued','received','cancelled')
            ),
            total_amount NUMERIC(12, 2) NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS status_events (
            id SERIAL PRIMARY KEY,
            entity TEXT NOT NULL CHECK (entity IN ('requisition','purchase_order')),
            entity_id INTEGER NOT NULL,
            from_status TEXT,
            to_status TEXT,
            reason TEXT,
            actor_id TEXT,
            occurred_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS delivery_log (
            id SERIAL PRIMARY KEY,
            entity TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            channel TEXT NOT NULL,
            recipient TEXT,
            status TEXT NOT NULL CHECK (status IN ('sent','failed')),
            error TEXT,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    _create_indexes(db)


def _create_indexes(db: Database) -> None:
    db.execute("CREATE INDEX IF NOT EXISTS idx_requisitions_status ON requisitions (status)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_requisitions_requested_by ON requisitions (requested_by_id)")
    db.execute(
        "CREATE INDEX IF NOT EXISTS idx_requisition_items_requisition ON requisition_items (requisition_id, line_no)"
    )
    db.execute("CREATE INDEX IF NOT EXISTS idx_supplier_items_supplier ON supplier_items (supplier_id)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_status_events_entity ON status_events (entity, entity_id)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_delivery_log_entity ON delivery_log (entity, entity_id)")
