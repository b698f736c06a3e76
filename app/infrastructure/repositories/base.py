from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable


def _normalize_value(value: Any) -> Any:
    # postgres hands back NUMERIC/DATE/TIMESTAMP objects; sqlite stores text.
    if isinstance(value, Decimal):
        return str(value.quantize(Decimal("0.01")))
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    return value


class BaseRepository:
    @staticmethod
    def row_to_dict(row: Any) -> dict | None:
        if row is None:
            return None
        return {key: _normalize_value(value) for key, value in dict(row).items()}

    @classmethod
    def rows_to_dicts(cls, rows: Iterable[Any]) -> list[dict]:
        return [cls.row_to_dict(row) for row in rows]

    @staticmethod
    def inserted_id(cursor) -> int:
        # sqlite keeps a RETURNING statement open until it is drained.
        row = cursor.fetchall()[0]
        return int(row["id"] if isinstance(row, dict) else row[0])
