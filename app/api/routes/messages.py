"""Message history and creation endpoints."""

import logging

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_chat_service, require_auth
from app.core.security import Identity
from app.models.schemas import CreateMessageRequest, CreateMessageResponse, MessageListResponse
from app.services.chat_service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages"])


@router.get("/messages/{match_id}", response_model=MessageListResponse)
async def get_messages(
    match_id: int,
    identity: Identity = Depends(require_auth),
    chat: ChatService = Depends(get_chat_service),
):
    """Full history of a match, oldest first. Marks the caller's unread messages read."""
    messages = await chat.get_history(match_id, identity.user_id)
    return MessageListResponse(messages=messages)


@router.post("/messages", response_model=CreateMessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    body: CreateMessageRequest,
    identity: Identity = Depends(require_auth),
    chat: ChatService = Depends(get_chat_service),
):
    message = await chat.send_message(identity.user_id, body.match_id, body.content)
    return CreateMessageResponse(data=message)
