"""
Data Models and Schemas
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import HistoryRole


class ParticipantProfile(BaseModel):
    """Profile fields the chat core needs from the user registry."""

    id: int
    name: str
    role: str
    email: Optional[str] = None
    profile_photo: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    age: Optional[int] = None
    skills: List[str] = Field(default_factory=list)
    # demo brand account allowed to receive simulated replies
    is_preview: bool = False
    # ambassador whose side of the chat is generated
    is_preview_ambassador: bool = False


class Match(BaseModel):
    """A mutual connection between a brand (initiator) and an ambassador (counterpart)."""

    id: int
    brand_id: int
    ambassador_id: int
    created_at: Optional[datetime] = None

    @property
    def initiator_id(self) -> int:
        return self.brand_id

    @property
    def counterpart_id(self) -> int:
        return self.ambassador_id

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.brand_id, self.ambassador_id)

    def other_participant(self, user_id: int) -> int:
        if user_id == self.brand_id:
            return self.ambassador_id
        if user_id == self.ambassador_id:
            return self.brand_id
        raise ValueError(f"User {user_id} is not part of match {self.id}")


class ChatMessage(BaseModel):
    """Persisted chat message, optionally enriched with sender display fields."""

    id: int
    match_id: int
    sender_id: int
    content: str
    read: bool = False
    created_at: datetime
    sender_name: Optional[str] = None
    sender_photo: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class HistoryTurn(BaseModel):
    """One line of conversation context handed to the reply generator."""

    role: HistoryRole
    text: str


class MatchSummary(BaseModel):
    """Match as listed for one of its participants."""

    id: int
    brand_id: int
    ambassador_id: int
    created_at: Optional[datetime] = None
    other_user_id: int
    other_user_name: Optional[str] = None
    other_user_photo: Optional[str] = None


class CreateMessageRequest(BaseModel):
    """REST message creation request"""

    model_config = ConfigDict(populate_by_name=True)

    match_id: int = Field(alias="matchId")
    content: str = Field(min_length=1, max_length=5000)


class MessageListResponse(BaseModel):
    messages: List[ChatMessage]


class CreateMessageResponse(BaseModel):
    message: str = "Message sent successfully"
    data: ChatMessage
