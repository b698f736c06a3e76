from __future__ import annotations

from typing import Iterable

from app.domain.contracts import RequisitionItemInput
from app.infrastructure.repositories.base import BaseRepository
from app.procurement.amounts import compute_line


class RequisitionItemRepository(BaseRepository):
    def create(self, db, *, requisition_id: int, line_no: int, item: RequisitionItemInput) -> int:
        line = compute_line(item)
        cursor = db.execute(
            """
            INSERT INTO requisition_items (
                requisition_id, line_no, description, quantity, unit, unit_price,
                vat_type, total_price, vat_amount
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                requisition_id,
                line_no,
                item.description,
                int(item.quantity),
                item.unit,
                item.unit_price,
                line.vat_type.value,
                str(line.net),
                str(line.vat_payable),
            ),
        )
        return self.inserted_id(cursor)

    def create_many(self, db, *, requisition_id: int, items: Iterable[RequisitionItemInput]) -> int:
        created = 0
        for line_no, item in enumerate(items, start=1):
            self.create(db, requisition_id=requisition_id, line_no=line_no, item=item)
            created += 1
        return created

    def replace_all(self, db, *, requisition_id: int, items: Iterable[RequisitionItemInput]) -> int:
        db.execute("DELETE FROM requisition_items WHERE requisition_id = ?", (requisition_id,))
        return self.create_many(db, requisition_id=requisition_id, items=items)

    def list_for_requisition(self, db, requisition_id: int) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, requisition_id, line_no, description, quantity, unit, unit_price,
                   vat_type, total_price, vat_amount
            FROM requisition_items
            WHERE requisition_id = ?
            ORDER BY line_no ASC, id ASC
            """,
            (requisition_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)
