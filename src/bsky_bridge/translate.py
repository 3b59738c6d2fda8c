"""Translation of Bluesky chat log entries into bridge events.

Log entry kinds other than ``logCreateMessage`` are skipped. Message payloads
are a union of a live message view and a deleted message view; anything the
converter doesn't recognize becomes an "Unsupported message" notice instead
of an error.
"""

import logging
from datetime import datetime
from typing import Any

from .core import (
    ConvertedMessage,
    DeletedMessageView,
    EventSender,
    MessagePart,
    MessageView,
    PortalKey,
    RemoteMessage,
)
from .errors import InvalidDIDError, MessageParseError
from .ids import make_message_id, make_portal_id, make_user_id_from_string, make_user_login_id, parse_user_login_id

logger = logging.getLogger(__name__)

LOG_CREATE_MESSAGE = "chat.bsky.convo.defs#logCreateMessage"
MESSAGE_VIEW = "chat.bsky.convo.defs#messageView"
DELETED_MESSAGE_VIEW = "chat.bsky.convo.defs#deletedMessageView"

MSG_TEXT = "m.text"
MSG_NOTICE = "m.notice"

DELETED_MESSAGE_BODY = "Deleted message"
UNSUPPORTED_MESSAGE_BODY = "Unsupported message"


def parse_datetime(value: str) -> datetime:
    """Parse an atproto datetime string. Naive timestamps are rejected."""
    if not isinstance(value, str) or not value:
        raise ValueError("empty datetime")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"datetime {value!r} has no timezone")
    return parsed


def to_stream_order(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def make_event_sender(login_id: str, user_did: str) -> EventSender:
    """Build the sender of an event, raising InvalidDIDError for a bad DID."""
    return EventSender(
        sender=make_user_id_from_string(user_did),
        sender_login=make_user_login_id(user_did),
        is_from_me=user_did == parse_user_login_id(login_id),
    )


def make_portal_key(login_id: str, convo_id: str) -> PortalKey:
    # Bluesky only has DMs, so every portal is scoped to its receiver
    return PortalKey(id=make_portal_id(convo_id), receiver=login_id)


def parse_message_union(raw: Any) -> tuple[MessageView | None, DeletedMessageView | None]:
    """Split a message union dict into its live and deleted views.

    At most one of the returned views is set. Unknown ``$type`` values give
    ``(None, None)``.
    """
    if not isinstance(raw, dict):
        return None, None
    msg_type = raw.get("$type", "")
    sender = raw.get("sender") or {}
    common = {
        "id": raw.get("id", ""),
        "rev": raw.get("rev", ""),
        "sender_did": sender.get("did", "") if isinstance(sender, dict) else "",
        "sent_at": raw.get("sentAt", ""),
    }
    if msg_type == MESSAGE_VIEW:
        return MessageView(text=raw.get("text", ""), **common), None
    if msg_type == DELETED_MESSAGE_VIEW:
        return None, DeletedMessageView(**common)
    return None, None


def parse_message_details(
    login_id: str,
    msg_view: MessageView | None,
    deleted_view: DeletedMessageView | None,
) -> tuple[EventSender, datetime, str, Any]:
    """Return ``(sender, sent_at, msg_id, data)`` for whichever view is set."""
    if msg_view is not None:
        view = msg_view
    elif deleted_view is not None:
        view = deleted_view
    else:
        raise MessageParseError("no message view or deleted message view")

    try:
        sender = make_event_sender(login_id, view.sender_did)
    except InvalidDIDError as e:
        raise MessageParseError(f"failed to parse sender DID: {e}") from e
    try:
        sent_at = parse_datetime(view.sent_at)
    except ValueError as e:
        raise MessageParseError(f"failed to parse sentAt: {e}") from e
    return sender, sent_at, view.id, view


def convert_message(data: Any) -> ConvertedMessage:
    """Convert a message payload into bridge content. Never fails."""
    if isinstance(data, MessageView):
        part = MessagePart(msgtype=MSG_TEXT, body=data.text)
    elif isinstance(data, DeletedMessageView):
        part = MessagePart(msgtype=MSG_NOTICE, body=DELETED_MESSAGE_BODY)
    else:
        part = MessagePart(msgtype=MSG_NOTICE, body=UNSUPPORTED_MESSAGE_BODY)
    return ConvertedMessage(parts=[part])


def translate_log_entry(login_id: str, entry: dict) -> RemoteMessage | None:
    """Translate one log entry, or return None for kinds that aren't handled.

    Raises MessageParseError if a message entry can't be parsed.
    """
    if entry.get("$type") != LOG_CREATE_MESSAGE:
        return None

    convo_id = entry.get("convoId", "")
    msg_view, deleted_view = parse_message_union(entry.get("message"))
    sender, sent_at, msg_id, data = parse_message_details(login_id, msg_view, deleted_view)
    portal_key = make_portal_key(login_id, convo_id)
    return RemoteMessage(
        portal_key=portal_key,
        sender=sender,
        id=make_message_id(portal_key.id, msg_id),
        timestamp=sent_at,
        stream_order=to_stream_order(sent_at),
        data=data,
        convert=convert_message,
        log_context={
            "chat_id": convo_id,
            "rev": entry.get("rev", ""),
            "message_id": msg_id,
            "sender_id": sender.sender,
        },
    )


def handle_event(login, entry: dict) -> None:
    """Translate a log entry and queue it on ``login``.

    Entries that fail to parse are logged and dropped. Errors from the queue
    itself propagate, so the batch they belong to gets redelivered.
    """
    logger.debug("Received log entry for %s: %s", login.id, entry)
    try:
        event = translate_log_entry(login.id, entry)
    except MessageParseError as e:
        logger.error("Failed to parse message details in %s: %s", entry.get("convoId", ""), e)
        return
    if event is not None:
        login.queue_remote_event(event)
