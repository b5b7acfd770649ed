from enum import Enum


class UserRole(str, Enum):
    BRAND = "brand"
    AMBASSADOR = "ambassador"


class ClientEvent(str, Enum):
    """Events a chat socket client may send."""
    JOIN = "join"
    LEAVE = "leave"
    SEND = "send"
    TYPING = "typing"
    STOP_TYPING = "stop_typing"


class ServerEvent(str, Enum):
    """Events the gateway emits to chat socket clients."""
    MESSAGE = "message"
    NOTIFICATION = "notification"
    TYPING = "typing"
    STOP_TYPING = "stop_typing"
    ERROR = "error"


# Event names used by the web client before the gateway was unified.
LEGACY_CLIENT_EVENTS = {
    "join_match": ClientEvent.JOIN,
    "leave_match": ClientEvent.LEAVE,
    "send_message": ClientEvent.SEND,
}


class ReplyTrigger(str, Enum):
    FIRST = "first"
    FOLLOWUP = "followup"


class HistoryRole(str, Enum):
    COUNTERPART = "counterpart"
    OTHER = "other"
