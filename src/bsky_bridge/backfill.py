"""Forward backfill of conversation history."""

import logging

from .core import BackfillMessage, FetchMessagesParams, FetchMessagesResponse
from .errors import BackfillNotSupportedError, MessageParseError
from .ids import make_message_id, parse_portal_id
from .translate import convert_message, parse_message_details, parse_message_union, to_stream_order
from .xrpc import convo_get_messages

logger = logging.getLogger(__name__)

MAX_BACKFILL_COUNT = 100


def fetch_messages(client, params: FetchMessagesParams) -> FetchMessagesResponse:
    """Fetch messages newer than ``params.anchor_timestamp``, oldest first.

    Only forward backfill is possible. Messages that fail to parse are
    skipped. ``mark_read`` is set when the bundled conversation view says
    there is nothing unread.
    """
    if not params.forward:
        raise BackfillNotSupportedError("backward backfill is not yet supported")

    portal_id = params.portal_key.id
    limit = min(params.count, MAX_BACKFILL_COUNT)
    resp = convo_get_messages(client.chat_rpc, parse_portal_id(portal_id), "", limit)

    messages = []
    for raw in resp.get("messages") or []:
        msg_view, deleted_view = parse_message_union(raw)
        try:
            sender, sent_at, msg_id, data = parse_message_details(client.login.id, msg_view, deleted_view)
        except MessageParseError as e:
            logger.error("Failed to parse message details in %s: %s", portal_id, e)
            continue
        if params.anchor_timestamp is not None and not sent_at > params.anchor_timestamp:
            continue
        messages.append(BackfillMessage(
            converted=convert_message(data),
            sender=sender,
            id=make_message_id(portal_id, msg_id),
            timestamp=sent_at,
            stream_order=to_stream_order(sent_at),
        ))

    # getMessages pages newest first
    messages.sort(key=lambda m: m.stream_order)

    convo = params.bundled_data
    mark_read = isinstance(convo, dict) and convo.get("unreadCount") == 0
    return FetchMessagesResponse(messages=messages, forward=True, mark_read=mark_read)
