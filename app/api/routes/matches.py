"""Match listing for the chat sidebar."""

from typing import List

from fastapi import APIRouter, Depends

from app.api.dependencies import get_chat_service, require_auth
from app.core.security import Identity
from app.models.schemas import MatchSummary
from app.services.chat_service import ChatService

router = APIRouter(tags=["matches"])


@router.get("/matches", response_model=List[MatchSummary])
async def list_matches(
    identity: Identity = Depends(require_auth),
    chat: ChatService = Depends(get_chat_service),
):
    return await chat.list_matches(identity.user_id)
