from __future__ import annotations

from typing import Any, Iterable

from app.db import is_unique_violation, unique_violation_target
from app.errors import ConflictError
from app.infrastructure.repositories.base import BaseRepository
from app.procurement.numbering import InsertResult, NumberingScheme, max_sequence


_DETAIL_COLUMNS = """
    po.id,
    po.po_number,
    po.requisition_id,
    po.approved_by_id,
    po.issue_date,
    po.status,
    po.total_amount,
    po.created_at,
    po.updated_at,
    r.requisition_number,
    r.project_id,
    r.supplier_id,
    r.requested_by_id,
    r.delivery_date,
    r.delivery_address,
    r.delivery_instructions,
    p.name AS project_name,
    p.contract_number AS project_contract_number,
    s.name AS supplier_name,
    s.email AS supplier_email,
    s.address AS supplier_address,
    s.phone AS supplier_phone,
    s.contact_person AS supplier_contact_person,
    a.email AS approved_by_email,
    a.first_name AS approved_by_first_name,
    a.last_name AS approved_by_last_name,
    a.role AS approved_by_role,
    u.email AS requested_by_email,
    u.first_name AS requested_by_first_name,
    u.last_name AS requested_by_last_name,
    u.role AS requested_by_role
"""

_DETAIL_JOINS = """
    FROM purchase_orders po
    JOIN requisitions r ON r.id = po.requisition_id
    LEFT JOIN projects p ON p.id = r.project_id
    LEFT JOIN suppliers s ON s.id = r.supplier_id
    LEFT JOIN users a ON a.id = po.approved_by_id
    LEFT JOIN users u ON u.id = r.requested_by_id
"""


class PurchaseOrderRepository(BaseRepository):
    def get_by_id(self, db, purchase_order_id: int) -> dict | None:
        row = db.execute(
            f"""
            SELECT {_DETAIL_COLUMNS}
            {_DETAIL_JOINS}
            WHERE po.id = ?
            LIMIT 1
            """,
            (purchase_order_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def get_by_requisition(self, db, requisition_id: int) -> dict | None:
        row = db.execute(
            f"""
            SELECT {_DETAIL_COLUMNS}
            {_DETAIL_JOINS}
            WHERE po.requisition_id = ?
            LIMIT 1
            """,
            (requisition_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def get_by_number(self, db, po_number: str) -> dict | None:
        row = db.execute(
            "SELECT id, po_number, requisition_id FROM purchase_orders WHERE po_number = ? LIMIT 1",
            (po_number,),
        ).fetchone()
        return self.row_to_dict(row)

    def create(
        self,
        db,
        *,
        po_number: str,
        requisition_id: int,
        approved_by_id: str,
        issue_date: str,
        total_amount: str,
        status: str = "issued",
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO purchase_orders (po_number, requisition_id, approved_by_id, issue_date, status, total_amount)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (po_number, requisition_id, approved_by_id, issue_date, status, total_amount),
        )
        return self.inserted_id(cursor)

    def try_create(self, db, **fields: Any) -> InsertResult[int]:
        """Insert inside a savepoint.

        A clash on ``po_number`` is a numbering race and is reported so the
        caller can retry; a clash on ``requisition_id`` means the requisition
        already has its order and is final.
        """
        try:
            with db.savepoint():
                return InsertResult.ok(self.create(db, **fields))
        except Exception as exc:
            if not is_unique_violation(exc):
                raise
            target = unique_violation_target(exc)
            if "po_number" in target:
                return InsertResult.duplicate_number()
            if "requisition_id" in target:
                raise ConflictError(
                    code="purchase_order_exists",
                    payload={"requisition_id": fields.get("requisition_id")},
                ) from exc
            raise

    def update_status_if(self, db, purchase_order_id: int, *, from_status: str, to_status: str) -> int:
        cursor = db.execute(
            """
            UPDATE purchase_orders
            SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND status = ?
            """,
            (to_status, purchase_order_id, from_status),
        )
        return int(cursor.rowcount or 0)

    def list_filtered(
        self,
        db,
        *,
        statuses: Iterable[str] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        where = ""
        params: list[Any] = []
        status_values = [status for status in (statuses or []) if status]
        if status_values:
            where = f"WHERE po.status IN ({', '.join('?' for _ in status_values)})"
            params.extend(status_values)
        params.extend([int(limit), int(offset)])
        rows = db.execute(
            f"""
            SELECT {_DETAIL_COLUMNS}
            {_DETAIL_JOINS}
            {where}
            ORDER BY po.created_at DESC, po.id DESC
            LIMIT ? OFFSET ?
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)

    def max_sequence_for_prefix(self, db, scheme: NumberingScheme, year: int) -> int | None:
        rows = db.execute(
            "SELECT po_number FROM purchase_orders WHERE po_number LIKE ? "
            "ORDER BY LENGTH(po_number) DESC, po_number DESC LIMIT 1",
            (scheme.like_pattern(year),),
        ).fetchall()
        return max_sequence(scheme, year, (row["po_number"] for row in rows))
