"""Repository layer for database access abstractions."""

from .match_repository import MatchRepository
from .preview_repository import PreviewRepository
from .user_repository import UserRepository

__all__ = [
    "MatchRepository",
    "PreviewRepository",
    "UserRepository",
]
