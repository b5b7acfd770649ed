"""
Data models and schemas for the chat service
"""

from .schemas import (
    ParticipantProfile,
    Match,
    ChatMessage,
    HistoryTurn,
    MatchSummary,
    CreateMessageRequest,
    MessageListResponse,
    CreateMessageResponse,
)

__all__ = [
    "ParticipantProfile",
    "Match",
    "ChatMessage",
    "HistoryTurn",
    "MatchSummary",
    "CreateMessageRequest",
    "MessageListResponse",
    "CreateMessageResponse",
]
