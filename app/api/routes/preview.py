"""Preview (demo) account maintenance."""

import logging

from fastapi import APIRouter, Depends

from app.api.dependencies import get_chat_service, require_auth
from app.core.security import Identity
from app.services.chat_service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["preview"])


@router.post("/preview/reset")
async def reset_preview(
    identity: Identity = Depends(require_auth),
    chat: ChatService = Depends(get_chat_service),
):
    """Wipe a preview brand's matches, messages, likes and passes."""
    removed = await chat.reset_preview(identity.user_id)
    return {"message": "Preview reset successfully", "removed": removed}
