"""Database repository helpers for participant profiles."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from app.models.schemas import ParticipantProfile
from app.services.database_service import DatabaseService

_PROFILE_COLUMNS = (
    "id, name, role, email, profile_photo, bio, location, age, skills, "
    "COALESCE(is_preview, FALSE) AS is_preview, "
    "COALESCE(is_preview_ambassador, FALSE) AS is_preview_ambassador"
)


class UserRepository:
    """Profile registry lookups."""

    def __init__(self, db_service: DatabaseService) -> None:
        self._db = db_service

    async def get_profile(self, user_id: int) -> Optional[ParticipantProfile]:
        query = f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = %s"
        results = await asyncio.to_thread(self._db.execute_query, query, (user_id,))
        if not results:
            return None
        return self._map_row(results[0])

    async def get_profiles(self, user_ids: Iterable[int]) -> Dict[int, ParticipantProfile]:
        ids: List[int] = sorted(set(user_ids))
        if not ids:
            return {}
        query = f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = ANY(%s)"
        results = await asyncio.to_thread(self._db.execute_query, query, (ids,))
        profiles = [self._map_row(row) for row in results]
        return {profile.id: profile for profile in profiles}

    @staticmethod
    def _map_row(row: Dict[str, Any]) -> ParticipantProfile:
        payload = dict(row)
        payload["skills"] = list(payload.get("skills") or [])
        return ParticipantProfile(**payload)
