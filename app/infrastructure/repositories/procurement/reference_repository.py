from __future__ import annotations

import uuid
from typing import Any, Dict

from app.db import is_unique_violation, unique_violation_target
from app.errors import ConflictError
from app.infrastructure.repositories.base import BaseRepository


class ReferenceRepository(BaseRepository):
    """Projects, suppliers, supplier catalog items and users."""

    def _insert(self, db, sql: str, params: tuple) -> int:
        try:
            with db.transaction():
                return self.inserted_id(db.execute(sql, params))
        except Exception as exc:
            if is_unique_violation(exc):
                raise ConflictError(
                    code="duplicate_value",
                    details=unique_violation_target(exc),
                ) from exc
            raise

    def get_project(self, db, project_id: int) -> dict | None:
        row = db.execute(
            """
            SELECT id, name, contract_number, start_date, end_date, status, created_at, updated_at
            FROM projects
            WHERE id = ?
            LIMIT 1
            """,
            (project_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def list_projects(self, db, *, status: str | None = None) -> list[dict]:
        if status:
            rows = db.execute(
                """
                SELECT id, name, contract_number, start_date, end_date, status
                FROM projects
                WHERE status = ?
                ORDER BY name ASC, id ASC
                """,
                (status,),
            ).fetchall()
        else:
            rows = db.execute(
                """
                SELECT id, name, contract_number, start_date, end_date, status
                FROM projects
                ORDER BY name ASC, id ASC
                """
            ).fetchall()
        return self.rows_to_dicts(rows)

    def create_project(self, db, fields: Dict[str, Any]) -> int:
        return self._insert(
            db,
            """
            INSERT INTO projects (name, contract_number, start_date, end_date, status)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                fields["name"],
                fields["contract_number"],
                fields["start_date"],
                fields.get("end_date"),
                fields.get("status") or "active",
            ),
        )

    def get_supplier(self, db, supplier_id: int) -> dict | None:
        row = db.execute(
            """
            SELECT id, name, address, email, phone, contact_person, created_at, updated_at
            FROM suppliers
            WHERE id = ?
            LIMIT 1
            """,
            (supplier_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def list_suppliers(self, db) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, name, address, email, phone, contact_person
            FROM suppliers
            ORDER BY name ASC, id ASC
            """
        ).fetchall()
        return self.rows_to_dicts(rows)

    def create_supplier(self, db, fields: Dict[str, Any]) -> int:
        return self._insert(
            db,
            """
            INSERT INTO suppliers (name, address, email, phone, contact_person)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                fields["name"],
                fields["address"],
                fields["email"],
                fields.get("phone"),
                fields.get("contact_person"),
            ),
        )

    def list_supplier_items(self, db, supplier_id: int) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, supplier_id, description, unit, unit_price, vat_type
            FROM supplier_items
            WHERE supplier_id = ?
            ORDER BY description ASC, id ASC
            """,
            (supplier_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def create_supplier_item(self, db, supplier_id: int, fields: Dict[str, Any]) -> int:
        return self._insert(
            db,
            """
            INSERT INTO supplier_items (supplier_id, description, unit, unit_price, vat_type)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                supplier_id,
                fields["description"],
                fields["unit"],
                fields["unit_price"],
                fields["vat_type"],
            ),
        )

    def get_user(self, db, user_id: str) -> dict | None:
        row = db.execute(
            """
            SELECT id, email, first_name, last_name, role, created_at, updated_at
            FROM users
            WHERE id = ?
            LIMIT 1
            """,
            (str(user_id),),
        ).fetchone()
        return self.row_to_dict(row)

    def list_users(self, db, *, role: str | None = None) -> list[dict]:
        if role:
            rows = db.execute(
                """
                SELECT id, email, first_name, last_name, role
                FROM users
                WHERE role = ?
                ORDER BY email ASC
                """,
                (role,),
            ).fetchall()
        else:
            rows = db.execute(
                """
                SELECT id, email, first_name, last_name, role
                FROM users
                ORDER BY email ASC
                """
            ).fetchall()
        return self.rows_to_dicts(rows)

    def create_user(self, db, fields: Dict[str, Any]) -> str:
        user_id = str(fields.get("id") or uuid.uuid4())
        try:
            with db.transaction():
                db.execute(
                    """
                    INSERT INTO users (id, email, first_name, last_name, role)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        fields["email"],
                        fields.get("first_name"),
                        fields.get("last_name"),
                        fields["role"],
                    ),
                )
        except Exception as exc:
            if is_unique_violation(exc):
                raise ConflictError(code="duplicate_value", details=unique_violation_target(exc)) from exc
            raise
        return user_id
