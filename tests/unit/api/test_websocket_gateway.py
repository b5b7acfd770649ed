"""Chat socket gateway tests, driven through the real FastAPI app with in-memory stores."""

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api.dependencies import get_chat_service, get_token_verifier
from app.api.routes.websockets import parse_client_frame
from app.core.errors import InvalidRequestError
from app.core.realtime import ConnectionManager, RealtimeConfig
from app.core.security import TokenVerifier, issue_token
from app.main import app
from app.models.enums import ClientEvent
from app.services.realtime_service import RealtimeService
from tests.conftest import AMBASSADOR_ID, BRAND_ID, OUTSIDER_ID, TEST_JWT_SECRET
from tests.utils.fakes import FakeNotifier, build_chat_service


def _token(user_id, role="brand"):
    return issue_token(user_id, role, TEST_JWT_SECRET)


def _sync(ws):
    """Round-trip a malformed frame; frames on one socket are handled in order."""
    ws.send_text("sync")
    assert ws.receive_json()["type"] == "error"


def _join(ws, match_id=1):
    ws.send_json({"type": "join", "payload": {"matchId": match_id}})
    _sync(ws)


@pytest.fixture
def chat(store, lock_table):
    manager = ConnectionManager(
        RealtimeConfig(
            max_connections=0,
            send_timeout=2.0,
            send_retries=0,
            retry_backoff=0.0,
            disconnect_on_backpressure=True,
        )
    )
    return build_chat_service(store, lock_table, realtime=RealtimeService(manager), notifier=FakeNotifier())


@pytest.fixture
def client(chat):
    secrets = Mock()
    secrets.get.return_value = TEST_JWT_SECRET
    app.dependency_overrides[get_chat_service] = lambda: chat
    app.dependency_overrides[get_token_verifier] = lambda: TokenVerifier(secret_provider=secrets)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def plain_pair(store):
    store.users[BRAND_ID].is_preview = False
    store.users[AMBASSADOR_ID].is_preview_ambassador = False


def test_connection_without_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat"):
            pass
    assert exc_info.value.code == 1008


def test_connection_with_bad_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat?token=not-a-token"):
            pass
    assert exc_info.value.code == 1008


def test_token_accepted_from_header_and_subprotocol(client):
    with client.websocket_connect("/ws/chat", headers={"Authorization": f"Bearer {_token(BRAND_ID)}"}) as ws:
        _sync(ws)
    with client.websocket_connect("/api/ws/chat", subprotocols=[_token(BRAND_ID)]) as ws:
        _sync(ws)


@pytest.mark.usefixtures("plain_pair")
def test_message_is_delivered_to_room_and_recipient(client, store, chat):
    with client.websocket_connect(f"/ws/chat?token={_token(BRAND_ID)}") as brand_ws, \
            client.websocket_connect(f"/ws/chat?token={_token(AMBASSADOR_ID, 'ambassador')}") as ambassador_ws:
        _join(brand_ws)
        _join(ambassador_ws)

        brand_ws.send_json({"type": "send", "payload": {"matchId": 1, "content": "Hello Riley"}})

        echoed = brand_ws.receive_json()
        assert echoed["type"] == "message"
        assert echoed["payload"]["content"] == "Hello Riley"
        assert echoed["payload"]["sender_id"] == BRAND_ID

        received = ambassador_ws.receive_json()
        assert received == echoed
        notification = ambassador_ws.receive_json()
        assert notification["type"] == "notification"
        assert notification["payload"]["matchId"] == 1
        assert notification["payload"]["message"]["id"] == echoed["payload"]["id"]

    assert [m.content for m in store.messages] == ["Hello Riley"]
    # The ambassador was connected, so no e-mail.
    assert chat.notifier.calls == []


def test_outsider_gets_error_and_stays_connected(client, store):
    with client.websocket_connect(f"/ws/chat?token={_token(OUTSIDER_ID)}") as ws:
        ws.send_json({"type": "join", "payload": {"matchId": 1}})
        assert ws.receive_json() == {"type": "error", "payload": {"message": "Access denied to this match"}}

        ws.send_json({"type": "send", "payload": {"matchId": 1, "content": "let me in"}})
        assert ws.receive_json()["payload"]["message"] == "Access denied to this match"

        _sync(ws)

    assert store.messages == []


def test_malformed_frames_are_reported(client):
    with client.websocket_connect(f"/ws/chat?token={_token(BRAND_ID)}") as ws:
        ws.send_text("{not json")
        assert ws.receive_json()["payload"]["message"] == "Malformed event: expected JSON"

        ws.send_json({"type": "dance", "payload": {"matchId": 1}})
        assert ws.receive_json()["payload"]["message"] == "Unknown event 'dance'"

        ws.send_json({"type": "send", "payload": {"content": "no match"}})
        assert ws.receive_json()["payload"]["message"] == "matchId is required"

        ws.send_json({"type": "send", "payload": {"matchId": 1, "content": "   "}})
        assert ws.receive_json()["payload"]["message"] == "Message content is required"


@pytest.mark.usefixtures("plain_pair")
def test_typing_is_relayed_to_others_only(client):
    with client.websocket_connect(f"/ws/chat?token={_token(BRAND_ID)}") as brand_ws, \
            client.websocket_connect(f"/ws/chat?token={_token(AMBASSADOR_ID, 'ambassador')}") as ambassador_ws:
        _join(brand_ws)
        _join(ambassador_ws)

        brand_ws.send_json({"type": "typing", "payload": {"matchId": 1}})
        assert ambassador_ws.receive_json() == {"type": "typing", "payload": {"matchId": 1, "userId": BRAND_ID}}

        brand_ws.send_json({"type": "stop_typing", "payload": {"matchId": 1}})
        assert ambassador_ws.receive_json()["type"] == "stop_typing"

        # Nothing was echoed back to the typist.
        _sync(brand_ws)


def test_typing_in_foreign_match_is_rejected(client):
    with client.websocket_connect(f"/ws/chat?token={_token(OUTSIDER_ID)}") as ws:
        ws.send_json({"type": "typing", "payload": {"matchId": 1}})
        assert ws.receive_json()["type"] == "error"


@pytest.mark.usefixtures("plain_pair")
def test_legacy_event_names(client, store):
    with client.websocket_connect(f"/ws/chat?token={_token(BRAND_ID)}") as ws:
        ws.send_json({"type": "join_match", "payload": 1})
        ws.send_json({"type": "send_message", "payload": {"matchId": 1, "content": "old client"}})

        frame = ws.receive_json()
        assert frame["type"] == "message"
        assert frame["payload"]["content"] == "old client"

        ws.send_json({"type": "leave_match", "payload": "1"})
        _sync(ws)

    assert [m.content for m in store.messages] == ["old client"]


def test_preview_brand_join_receives_opening_reply(client, store):
    with client.websocket_connect(f"/ws/chat?token={_token(BRAND_ID)}") as ws:
        ws.send_json({"type": "join", "payload": {"matchId": 1}})

        frames = [ws.receive_json() for _ in range(4)]

    assert [f["type"] for f in frames] == ["typing", "stop_typing", "message", "notification"]
    assert frames[0]["payload"] == {"matchId": 1, "userId": AMBASSADOR_ID}
    assert frames[2]["payload"]["sender_id"] == AMBASSADOR_ID
    assert frames[2]["payload"]["content"] == "Hi there!"
    assert [m.sender_id for m in store.messages] == [AMBASSADOR_ID]


def test_parse_client_frame_accepts_bare_match_id():
    event, payload = parse_client_frame('{"type": "leave", "payload": 7}')

    assert event == ClientEvent.LEAVE
    assert payload == {"matchId": 7}


def test_parse_client_frame_requires_object_payload():
    with pytest.raises(InvalidRequestError):
        parse_client_frame('{"type": "send", "payload": "hello"}')
