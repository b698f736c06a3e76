from __future__ import annotations

from app.infrastructure.repositories.base import BaseRepository


class DeliveryLogRepository(BaseRepository):
    def record(
        self,
        db,
        *,
        entity: str,
        entity_id: int,
        channel: str,
        recipient: str | None,
        status: str,
        error: str | None = None,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO delivery_log (entity, entity_id, channel, recipient, status, error)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (entity, entity_id, channel, recipient, status, (error or "")[:1000] or None),
        )
        return self.inserted_id(cursor)

    def list_for_entity(self, db, *, entity: str, entity_id: int, limit: int = 50) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, entity, entity_id, channel, recipient, status, error, created_at
            FROM delivery_log
            WHERE entity = ? AND entity_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (entity, entity_id, int(limit)),
        ).fetchall()
        return self.rows_to_dicts(rows)
