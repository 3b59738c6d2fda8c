"""Core data models for bsky-bridge."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional


@dataclass
class AuthInfo:
    """Session tokens for one Bluesky account."""

    access_jwt: str
    refresh_jwt: str
    handle: str
    did: str


@dataclass
class LoginMetadata:
    """Everything that has to survive a restart for one login."""

    host: str  # PDS base URL, e.g. "https://morel.us-east.host.bsky.network"
    auth: Optional[AuthInfo] = None
    cursor: str = ""  # chat log position

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "auth": None if self.auth is None else {
                "access_jwt": self.auth.access_jwt,
                "refresh_jwt": self.auth.refresh_jwt,
                "handle": self.auth.handle,
                "did": self.auth.did,
            },
            "cursor": self.cursor,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LoginMetadata":
        auth = data.get("auth")
        return cls(
            host=data.get("host", ""),
            auth=AuthInfo(**auth) if auth else None,
            cursor=data.get("cursor", ""),
        )


@dataclass
class RemoteProfile:
    email: str = ""
    username: str = ""


class StateEvent(str, Enum):
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    TRANSIENT_DISCONNECT = "TRANSIENT_DISCONNECT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class BridgeState:
    """Connectivity report for one login."""

    state_event: StateEvent
    error: str = ""  # stable error code, e.g. "bsky-poll-failed"
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PortalKey:
    id: str
    receiver: str = ""  # user login ID; Bluesky chats are always per-user


@dataclass
class EventSender:
    sender: str  # ghost ID
    sender_login: str = ""
    is_from_me: bool = False


@dataclass
class MessagePart:
    """One piece of converted message content."""

    msgtype: str  # "m.text" | "m.notice"
    body: str
    type: str = "m.room.message"


@dataclass
class ConvertedMessage:
    parts: list[MessagePart] = field(default_factory=list)


@dataclass(frozen=True)
class MessageView:
    """A message that still exists on Bluesky."""

    id: str
    rev: str
    sender_did: str
    sent_at: str
    text: str = ""


@dataclass(frozen=True)
class DeletedMessageView:
    """A placeholder for a message that was deleted on Bluesky."""

    id: str
    rev: str
    sender_did: str
    sent_at: str


@dataclass
class Avatar:
    id: str  # remote URL
    get: Optional[Callable[[], bytes]] = None
    remove: bool = False


@dataclass
class UserInfo:
    identifiers: list[str] = field(default_factory=list)
    name: Optional[str] = None
    avatar: Optional[Avatar] = None


@dataclass
class ChatMember:
    sender: EventSender
    user_info: Optional[UserInfo] = None


@dataclass
class ChatInfo:
    members: dict[str, ChatMember] = field(default_factory=dict)  # keyed by ghost ID
    members_full: bool = True
    total_member_count: int = 0
    is_dm: bool = False
    muted_forever: bool = False
    can_backfill: bool = True


@dataclass
class RemoteMessage:
    """A new message event queued for the delivery framework."""

    portal_key: PortalKey
    sender: EventSender
    id: str  # bridge message ID
    timestamp: datetime
    stream_order: int  # sentAt in epoch milliseconds
    data: Any  # MessageView | DeletedMessageView
    convert: Callable[[Any], ConvertedMessage]
    log_context: dict[str, str] = field(default_factory=dict)
    create_portal: bool = True

    def convert_message(self) -> ConvertedMessage:
        return self.convert(self.data)


@dataclass
class ChatResync:
    """Conversation metadata refresh queued for the delivery framework."""

    portal_key: PortalKey
    chat_info: ChatInfo
    latest_message_ts: Optional[datetime] = None
    bundled_backfill_data: Any = None  # raw convo view, handed back on backfill
    log_context: dict[str, str] = field(default_factory=dict)
    create_portal: bool = True


@dataclass
class BackfillMessage:
    converted: ConvertedMessage
    sender: EventSender
    id: str
    timestamp: datetime
    stream_order: int


@dataclass
class FetchMessagesParams:
    portal_key: PortalKey
    count: int
    forward: bool = True
    anchor_timestamp: Optional[datetime] = None
    bundled_data: Any = None


@dataclass
class FetchMessagesResponse:
    messages: list[BackfillMessage] = field(default_factory=list)
    forward: bool = True
    mark_read: bool = False


@dataclass
class SentMessage:
    """Result of sending a message to Bluesky."""

    id: str
    sender_id: str
    timestamp: datetime
    stream_order: int


@dataclass(frozen=True)
class RoomFeatures:
    """What a bridged Bluesky conversation supports."""

    id: str
    max_text_length: int
