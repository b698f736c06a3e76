from __future__ import annotations

from typing import Any, Iterable

from app.db import is_unique_violation, unique_violation_target
from app.infrastructure.repositories.base import BaseRepository
from app.procurement.numbering import InsertResult, NumberingScheme, max_sequence


_DETAIL_COLUMNS = """
    r.id,
    r.requisition_number,
    r.project_id,
    r.supplier_id,
    r.requested_by_id,
    r.request_date,
    r.delivery_date,
    r.delivery_address,
    r.delivery_instructions,
    r.status,
    r.rejection_reason,
    r.decided_by_id,
    r.decided_at,
    r.total_amount,
    r.created_at,
    r.updated_at,
    p.name AS project_name,
    p.contract_number AS project_contract_number,
    s.name AS supplier_name,
    s.email AS supplier_email,
    s.address AS supplier_address,
    s.phone AS supplier_phone,
    s.contact_person AS supplier_contact_person,
    u.email AS requested_by_email,
    u.first_name AS requested_by_first_name,
    u.last_name AS requested_by_last_name,
    u.role AS requested_by_role
"""

_DETAIL_JOINS = """
    FROM requisitions r
    LEFT JOIN projects p ON p.id = r.project_id
    LEFT JOIN suppliers s ON s.id = r.supplier_id
    LEFT JOIN users u ON u.id = r.requested_by_id
"""


class RequisitionRepository(BaseRepository):
    def insert(
        self,
        db,
        *,
        requisition_number: str,
        project_id: int,
        supplier_id: int,
        requested_by_id: str,
        request_date: str,
        delivery_date: str,
        delivery_address: str,
        delivery_instructions: str | None,
        total_amount: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO requisitions (
                requisition_number, project_id, supplier_id, requested_by_id, request_date,
                delivery_date, delivery_address, delivery_instructions, status, total_amount
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?)
            RETURNING id
            """,
            (
                requisition_number,
                project_id,
                supplier_id,
                requested_by_id,
                request_date,
                delivery_date,
                delivery_address,
                delivery_instructions,
                total_amount,
            ),
        )
        return self.inserted_id(cursor)

    def try_insert(self, db, **fields: Any) -> InsertResult[int]:
        """Insert inside a savepoint; a duplicate number is reported, anything else raises."""
        try:
            with db.savepoint():
                return InsertResult.ok(self.insert(db, **fields))
        except Exception as exc:
            if is_unique_violation(exc) and "requisition_number" in unique_violation_target(exc):
                return InsertResult.duplicate_number()
            raise

    def get_by_id(self, db, requisition_id: int) -> dict | None:
        row = db.execute(
            f"""
            SELECT {_DETAIL_COLUMNS}
            {_DETAIL_JOINS}
            WHERE r.id = ?
            LIMIT 1
            """,
            (requisition_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def list_filtered(
        self,
        db,
        *,
        statuses: Iterable[str] | None = None,
        requested_by_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        where: list[str] = []
        params: list[Any] = []
        status_values = [status for status in (statuses or []) if status]
        if status_values:
            where.append(f"r.status IN ({', '.join('?' for _ in status_values)})")
            params.extend(status_values)
        if requested_by_id:
            where.append("r.requested_by_id = ?")
            params.append(requested_by_id)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        params.extend([int(limit), int(offset)])
        rows = db.execute(
            f"""
            SELECT {_DETAIL_COLUMNS}
            {_DETAIL_JOINS}
            {where_sql}
            ORDER BY r.created_at DESC, r.id DESC
            LIMIT ? OFFSET ?
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)

    def update_status_if_pending(
        self,
        db,
        requisition_id: int,
        *,
        status: str,
        decided_by_id: str,
        rejection_reason: str | None,
    ) -> int:
        cursor = db.execute(
            """
            UPDATE requisitions
            SET status = ?,
                decided_by_id = ?,
                decided_at = CURRENT_TIMESTAMP,
                rejection_reason = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = 'pending'
            """,
            (status, decided_by_id, rejection_reason, requisition_id),
        )
        return int(cursor.rowcount or 0)

    def set_total_amount(self, db, requisition_id: int, total_amount: str) -> None:
        db.execute(
            """
            UPDATE requisitions
            SET total_amount = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (total_amount, requisition_id),
        )

    def touch_if_pending(self, db, requisition_id: int) -> int:
        cursor = db.execute(
            """
            UPDATE requisitions
            SET updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = 'pending'
            """,
            (requisition_id,),
        )
        return int(cursor.rowcount or 0)

    def max_sequence_for_prefix(self, db, scheme: NumberingScheme, year: int) -> int | None:
        rows = db.execute(
            "SELECT requisition_number FROM requisitions WHERE requisition_number LIKE ? "
            "ORDER BY LENGTH(requisition_number) DESC, requisition_number DESC LIMIT 1",
            (scheme.like_pattern(year),),
        ).fetchall()
        return max_sequence(scheme, year, (row["requisition_number"] for row in rows))
