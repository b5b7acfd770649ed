"""
Shared API Dependencies
"""

import logging
from typing import Optional

from fastapi import Depends, Request, WebSocket

from app.config.settings import settings
from app.core.errors import UnauthorizedError
from app.core.realtime import ConnectionManager
from app.core.secrets import SecretProvider, env_secrets_provider
from app.core.security import Identity, TokenVerifier
from app.repositories.match_repository import MatchRepository
from app.repositories.preview_repository import PreviewRepository
from app.repositories.user_repository import UserRepository
from app.services.auto_reply_service import AutoReplyService
from app.services.background_task_service import get_background_task_service
from app.services.chat_service import ChatService
from app.services.conversation_repository import ConversationRepository
from app.services.database_service import get_database_service
from app.services.llm_service import get_llm_service
from app.services.notification_service import get_notification_service
from app.services.persona_service import PersonaReplyGenerator
from app.services.realtime_service import RealtimeService
from app.services.redis_pubsub import RedisPubSubManager
from app.services.reply_lock import ReplyLock, build_reply_lock


logger = logging.getLogger(__name__)


# --- Service Singletons ---
_secret_provider: Optional[SecretProvider] = None
_token_verifier: Optional[TokenVerifier] = None
_connection_manager: Optional[ConnectionManager] = None
_redis_pubsub: Optional[RedisPubSubManager] = None
_realtime_service: Optional[RealtimeService] = None
_reply_lock: Optional[ReplyLock] = None
_chat_service: Optional[ChatService] = None


def get_secret_provider() -> SecretProvider:
    """Dependency to get the current secrets provider."""
    global _secret_provider
    if _secret_provider is None:
        _secret_provider = env_secrets_provider
    return _secret_provider


def get_token_verifier() -> TokenVerifier:
    global _token_verifier
    if _token_verifier is None:
        _token_verifier = TokenVerifier(secret_provider=get_secret_provider())
    return _token_verifier


def get_connection_manager() -> ConnectionManager:
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager()
    return _connection_manager


def get_redis_pubsub() -> Optional[RedisPubSubManager]:
    """Cross-process fan-out, only when REALTIME_REDIS_FANOUT is on."""
    global _redis_pubsub
    if not settings.REALTIME_REDIS_FANOUT:
        return None
    if _redis_pubsub is None:
        _redis_pubsub = RedisPubSubManager(get_connection_manager())
    return _redis_pubsub


def get_realtime_service() -> RealtimeService:
    global _realtime_service
    if _realtime_service is None:
        _realtime_service = RealtimeService(get_connection_manager(), fanout=get_redis_pubsub())
    return _realtime_service


def get_reply_lock() -> ReplyLock:
    global _reply_lock
    if _reply_lock is None:
        _reply_lock = build_reply_lock(db=get_database_service())
    return _reply_lock


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        db = get_database_service()
        conversations = ConversationRepository(db)
        users = UserRepository(db)
        realtime = get_realtime_service()
        auto_replies = AutoReplyService(
            conversations=conversations,
            users=users,
            lock=get_reply_lock(),
            realtime=realtime,
            generator=PersonaReplyGenerator(get_llm_service()),
        )
        _chat_service = ChatService(
            conversations=conversations,
            matches=MatchRepository(db),
            users=users,
            realtime=realtime,
            notifier=get_notification_service(),
            auto_replies=auto_replies,
            tasks=get_background_task_service(),
            previews=PreviewRepository(db),
        )
    return _chat_service


# --- Auth Dependency ---
def _development_identity(raw_user_id: Optional[str]) -> Identity:
    """AUTH_OPTIONAL bypass: trust a plain user id. Never enable in production."""
    try:
        return Identity(user_id=int(raw_user_id))
    except (TypeError, ValueError):
        raise UnauthorizedError("Authentication required")


def _bearer_token(header_value: Optional[str]) -> Optional[str]:
    if header_value and header_value.lower().startswith("bearer "):
        return header_value.split(" ", 1)[1].strip()
    return None


async def require_auth(
    request: Request,
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Identity:
    """Require a Bearer credential for protected endpoints"""
    token = _bearer_token(request.headers.get("Authorization"))
    if not token and settings.AUTH_OPTIONAL:
        return _development_identity(request.headers.get("X-User-Id"))
    return verifier.verify(token)


def extract_ws_token(websocket: WebSocket) -> Optional[str]:
    """Read a socket credential from the header, ``token`` query or subprotocol."""
    token = _bearer_token(websocket.headers.get("authorization"))

    if not token:
        query_token = websocket.query_params.get("token")
        if query_token:
            token = query_token

    if not token and websocket.scope.get("subprotocols"):
        for subprotocol in websocket.scope["subprotocols"]:
            if subprotocol.lower().startswith("bearer "):
                token = subprotocol.split(" ", 1)[1]
                break
            if subprotocol.count(".") == 2:  # looks like a JWT
                token = subprotocol
                break

    return token


def authenticate_ws(websocket: WebSocket, verifier: TokenVerifier) -> Identity:
    """Resolve the socket's identity; raises UnauthorizedError before any room work."""
    token = extract_ws_token(websocket)
    if not token and settings.AUTH_OPTIONAL:
        return _development_identity(websocket.query_params.get("userId"))
    return verifier.verify(token)
