"""Data reset for preview (demo) brand accounts."""

from __future__ import annotations

import asyncio
from typing import Dict

from app.services.database_service import DatabaseService


class PreviewRepository:
    def __init__(self, db_service: DatabaseService) -> None:
        self._db = db_service

    def _reset_sync(self, brand_id: int) -> Dict[str, int]:
        # Messages first: they reference the matches being removed.
        cleanup_statements = (
            ("messages", "DELETE FROM messages WHERE match_id IN (SELECT id FROM matches WHERE brand_id = %s)"),
            ("matches", "DELETE FROM matches WHERE brand_id = %s"),
            ("likes", "DELETE FROM likes WHERE brand_id = %s"),
            ("passes", "DELETE FROM passes WHERE brand_id = %s"),
        )
        removed: Dict[str, int] = {}
        with self._db.transaction(query_type="preview_reset") as cursor:
            for table, statement in cleanup_statements:
                cursor.execute(statement, (brand_id,))
                removed[table] = cursor.rowcount or 0
        return removed

    async def reset_preview_data(self, brand_id: int) -> Dict[str, int]:
        """Remove every match, message, like and pass a preview brand created."""
        return await asyncio.to_thread(self._reset_sync, brand_id)
