"""Messages and read receipts going from the bridge to Bluesky."""

import logging

from .core import RoomFeatures, SentMessage
from .errors import InvalidDIDError, MessageParseError, MessageTooLongError, UnsupportedMessageTypeError
from .ids import make_message_id, parse_message_id, parse_portal_id
from .translate import make_event_sender, parse_datetime, to_stream_order
from .xrpc import convo_send_message, convo_update_read

logger = logging.getLogger(__name__)

TEXT_MSGTYPES = ("m.text", "m.notice", "m.emote")
MAX_TEXT_LENGTH = 10000

ROOM_FEATURES = RoomFeatures(
    id="bsky-bridge.capabilities.2025_03_16",
    max_text_length=MAX_TEXT_LENGTH,
)


def send_message(client, portal_id: str, text: str, msgtype: str = "m.text") -> SentMessage:
    """Send a text message to the conversation behind ``portal_id``."""
    if msgtype not in TEXT_MSGTYPES:
        raise UnsupportedMessageTypeError(f"unsupported message type {msgtype}")
    if len(text) > MAX_TEXT_LENGTH:
        raise MessageTooLongError(f"message is {len(text)} characters, the limit is {MAX_TEXT_LENGTH}")

    resp = convo_send_message(client.chat_rpc, parse_portal_id(portal_id), text)
    try:
        sent_at = parse_datetime(resp.get("sentAt", ""))
    except ValueError as e:
        raise MessageParseError(f"failed to parse sentAt: {e}") from e
    sender_did = (resp.get("sender") or {}).get("did", "")
    try:
        sender = make_event_sender(client.login.id, sender_did)
    except InvalidDIDError as e:
        raise MessageParseError(f"failed to parse sender DID: {e}") from e
    return SentMessage(
        id=make_message_id(portal_id, resp.get("id", "")),
        sender_id=sender.sender,
        timestamp=sent_at,
        stream_order=to_stream_order(sent_at),
    )


def send_read_receipt(client, portal_id: str, message_id: str | None = None) -> None:
    """Mark a conversation read, up to ``message_id`` if it can be decoded."""
    remote_msg_id = None
    if message_id:
        _, remote_msg_id = parse_message_id(message_id)
    resp = convo_update_read(client.chat_rpc, parse_portal_id(portal_id), remote_msg_id or None)
    logger.debug("Read receipt bridged for %s: %s", portal_id, resp)
