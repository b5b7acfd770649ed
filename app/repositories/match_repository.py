"""Database repository helpers for match lookups."""

from __future__ import annotations

import asyncio
from typing import List, Optional

from app.models.schemas import Match, MatchSummary
from app.services.database_service import DatabaseService


class MatchRepository:
    """Read-side access to the match registry.

    Matches are created by the like/accept flow elsewhere; the chat core
    only needs to resolve participants.
    """

    def __init__(self, db_service: DatabaseService) -> None:
        self._db = db_service

    async def get_match(self, match_id: int) -> Optional[Match]:
        query = "SELECT id, brand_id, ambassador_id, created_at FROM matches WHERE id = %s"
        results = await asyncio.to_thread(self._db.execute_query, query, (match_id,))
        if not results:
            return None
        return Match(**results[0])

    async def get_match_for_participant(self, match_id: int, user_id: int) -> Optional[Match]:
        """Return the match only when ``user_id`` is one of its two participants."""
        query = (
            "SELECT id, brand_id, ambassador_id, created_at FROM matches "
            "WHERE id = %s AND (brand_id = %s OR ambassador_id = %s)"
        )
        results = await asyncio.to_thread(self._db.execute_query, query, (match_id, user_id, user_id))
        if not results:
            return None
        return Match(**results[0])

    async def list_matches_for_user(self, user_id: int) -> List[MatchSummary]:
        query = """
            SELECT m.id, m.brand_id, m.ambassador_id, m.created_at,
                   u.id AS other_user_id, u.name AS other_user_name, u.profile_photo AS other_user_photo
            FROM matches m
            JOIN users u ON u.id = CASE WHEN m.brand_id = %s THEN m.ambassador_id ELSE m.brand_id END
            WHERE m.brand_id = %s OR m.ambassador_id = %s
            ORDER BY m.created_at DESC
        """
        results = await asyncio.to_thread(self._db.execute_query, query, (user_id, user_id, user_id))
        return [MatchSummary(**row) for row in results]
