"""Repository layer for chat message persistence."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from app.models.schemas import ChatMessage
from app.services.database_service import DatabaseService, get_database_service


_MESSAGE_COLUMNS = "m.id, m.match_id, m.sender_id, m.content, m.read, m.created_at"


class ConversationRepository:
    """Encapsulates all direct database access for match messages.

    Ordering within a match is ``created_at`` with the serial ``id`` as the
    tie-breaker, so concurrent inserts in the same transaction timestamp
    still come back in commit order.
    """

    def __init__(self, db: Optional[DatabaseService] = None) -> None:
        self.db = db or get_database_service()

    async def append_message(self, match_id: int, sender_id: int, content: str) -> ChatMessage:
        query = f"""
            WITH m AS (
                INSERT INTO messages (match_id, sender_id, content)
                VALUES (%s, %s, %s)
                RETURNING id, match_id, sender_id, content, read, created_at
            )
            SELECT {_MESSAGE_COLUMNS}, u.name AS sender_name, u.profile_photo AS sender_photo
            FROM m JOIN users u ON u.id = m.sender_id
        """
        rows = await asyncio.to_thread(self.db.execute_returning, query, (match_id, sender_id, content))
        if not rows:
            raise RuntimeError("Failed to create chat message")
        return self._map_message_row(rows[0])

    async def list_messages(self, match_id: int) -> List[ChatMessage]:
        query = f"""
            SELECT {_MESSAGE_COLUMNS}, u.name AS sender_name, u.profile_photo AS sender_photo
            FROM messages m
            JOIN users u ON u.id = m.sender_id
            WHERE m.match_id = %s
            ORDER BY m.created_at ASC, m.id ASC
        """
        rows = await asyncio.to_thread(self.db.execute_query, query, (match_id,))
        return [self._map_message_row(row) for row in rows]

    async def recent_messages(self, match_id: int, limit: int) -> List[ChatMessage]:
        """Return the newest ``limit`` messages, oldest first."""
        query = f"""
            SELECT * FROM (
                SELECT {_MESSAGE_COLUMNS}, u.name AS sender_name, u.profile_photo AS sender_photo
                FROM messages m
                JOIN users u ON u.id = m.sender_id
                WHERE m.match_id = %s
                ORDER BY m.created_at DESC, m.id DESC
                LIMIT %s
            ) recent
            ORDER BY created_at ASC, id ASC
        """
        rows = await asyncio.to_thread(self.db.execute_query, query, (match_id, limit))
        return [self._map_message_row(row) for row in rows]

    async def count_messages_by_sender(self, match_id: int, sender_id: int) -> int:
        query = "SELECT COUNT(*) AS total FROM messages WHERE match_id = %s AND sender_id = %s"
        rows = await asyncio.to_thread(self.db.execute_query, query, (match_id, sender_id))
        return int(rows[0]["total"]) if rows else 0

    async def mark_read(self, match_id: int, reader_id: int) -> int:
        """Flag every message the other participant sent as read."""
        query = "UPDATE messages SET read = TRUE WHERE match_id = %s AND sender_id != %s AND read = FALSE"
        return await asyncio.to_thread(self.db.execute_update, query, (match_id, reader_id))

    @staticmethod
    def _map_message_row(row: Dict[str, Any]) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            match_id=row["match_id"],
            sender_id=row["sender_id"],
            content=row["content"],
            read=bool(row.get("read")),
            created_at=row["created_at"],
            sender_name=row.get("sender_name"),
            sender_photo=row.get("sender_photo"),
        )
