import json
import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from app.api.dependencies import authenticate_ws, get_chat_service, get_token_verifier
from app.core.errors import AppError, InvalidRequestError, UnauthorizedError
from app.core.realtime import ClientConnection, ConnectionLimitError, room_channel
from app.core.security import TokenVerifier
from app.models.enums import LEGACY_CLIENT_EVENTS, ClientEvent, ServerEvent
from app.services.chat_service import ChatService
from app.utils.trace_id import new_trace_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websockets"])


def parse_client_frame(raw: str) -> Tuple[ClientEvent, Dict[str, Any]]:
    """Decode ``{"type": ..., "payload": ...}``.

    Legacy event names are accepted, and a bare match id is accepted as the
    payload of join / leave.
    """
    try:
        frame = json.loads(raw)
    except ValueError:
        raise InvalidRequestError("Malformed event: expected JSON")
    if not isinstance(frame, dict):
        raise InvalidRequestError("Malformed event: expected an object")

    event_name = frame.get("type") or frame.get("event")
    if event_name in LEGACY_CLIENT_EVENTS:
        event = LEGACY_CLIENT_EVENTS[event_name]
    else:
        try:
            event = ClientEvent(event_name)
        except ValueError:
            raise InvalidRequestError(f"Unknown event '{event_name}'")

    payload = frame.get("payload", frame.get("data"))
    if isinstance(payload, (int, str)) and event in (ClientEvent.JOIN, ClientEvent.LEAVE):
        payload = {"matchId": payload}
    if not isinstance(payload, dict):
        raise InvalidRequestError("Malformed event: missing payload")
    return event, payload


def _match_id(payload: Dict[str, Any]) -> int:
    raw = payload.get("matchId", payload.get("match_id"))
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidRequestError("matchId is required")


async def handle_client_frame(chat: ChatService, connection: ClientConnection, raw: str) -> None:
    """Dispatch one client frame. Failures are reported to this connection only."""
    manager = chat.realtime.manager
    try:
        event, payload = parse_client_frame(raw)
        match_id = _match_id(payload)

        if event == ClientEvent.JOIN:
            match = await chat.authorize(match_id, connection.user_id)
            manager.join_room(connection, match.id)
            try:
                await chat.maybe_first_reply(match, connection.user_id)
            except Exception:
                logger.warning("First-reply check failed for match %s", match.id, exc_info=True)

        elif event == ClientEvent.LEAVE:
            manager.leave_room(connection, match_id)

        elif event == ClientEvent.SEND:
            await chat.send_message(connection.user_id, match_id, payload.get("content"))

        else:
            if room_channel(match_id) not in connection.channels:
                await chat.authorize(match_id, connection.user_id)
            relayed = ServerEvent.TYPING if event == ClientEvent.TYPING else ServerEvent.STOP_TYPING
            await chat.realtime.emit_to_room(
                match_id,
                relayed,
                {"matchId": match_id, "userId": connection.user_id},
                exclude_connection_id=connection.id,
            )

    except AppError as exc:
        logger.info("Rejected event from user %s: %s", connection.user_id, exc.message)
        await chat.realtime.emit_error(connection.id, exc.message)
    except ConnectionLimitError as exc:
        await chat.realtime.emit_error(connection.id, str(exc))
    except Exception:
        logger.error("Error handling event from user %s", connection.user_id, exc_info=True)
        await chat.realtime.emit_error(connection.id, "Failed to process event")


def _accepted_subprotocol(websocket: WebSocket) -> Optional[str]:
    offered = websocket.scope.get("subprotocols") or []
    return offered[0] if offered else None


@router.websocket("/ws/chat")
async def chat_socket_endpoint(
    websocket: WebSocket,
    chat: ChatService = Depends(get_chat_service),
    verifier: TokenVerifier = Depends(get_token_verifier),
):
    new_trace_id()
    try:
        identity = authenticate_ws(websocket, verifier)
    except UnauthorizedError as exc:
        logger.warning("Chat socket refused: %s", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    manager = chat.realtime.manager
    await websocket.accept(subprotocol=_accepted_subprotocol(websocket))
    connection = manager.register(websocket, identity.user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            await handle_client_frame(chat, connection, raw)
    except WebSocketDisconnect:
        logger.info("Chat socket for user %s disconnected.", identity.user_id)
    except Exception as e:
        logger.error(f"Error in chat socket for user {identity.user_id}: {e}", exc_info=True)
    finally:
        manager.unregister(connection)


@router.websocket("/api/ws/chat")
async def chat_socket_endpoint_with_api_prefix(
    websocket: WebSocket,
    chat: ChatService = Depends(get_chat_service),
    verifier: TokenVerifier = Depends(get_token_verifier),
):
    await chat_socket_endpoint(websocket, chat, verifier)
