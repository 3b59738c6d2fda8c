"""Serialize queued bridge events to JSON."""

import json

from .core import ChatInfo, ChatResync, ConvertedMessage, EventSender, RemoteMessage


def sender_to_dict(sender: EventSender) -> dict:
    return {
        "sender": sender.sender,
        "sender_login": sender.sender_login,
        "is_from_me": sender.is_from_me,
    }


def converted_to_dict(converted: ConvertedMessage) -> list[dict]:
    return [
        {"type": part.type, "msgtype": part.msgtype, "body": part.body}
        for part in converted.parts
    ]


def chat_info_to_dict(info: ChatInfo) -> dict:
    return {
        "is_dm": info.is_dm,
        "muted": info.muted_forever,
        "can_backfill": info.can_backfill,
        "members_full": info.members_full,
        "total_member_count": info.total_member_count,
        "members": {
            user_id: {
                "name": member.user_info.name if member.user_info else None,
                "identifiers": member.user_info.identifiers if member.user_info else [],
                "avatar": member.user_info.avatar.id if member.user_info and member.user_info.avatar else "",
                "is_from_me": member.sender.is_from_me,
            }
            for user_id, member in info.members.items()
        },
    }


def event_to_dict(event) -> dict:
    """Convert a queued event into a JSON-serializable dict."""
    if isinstance(event, RemoteMessage):
        return {
            "type": "message",
            "portal_id": event.portal_key.id,
            "receiver": event.portal_key.receiver,
            "id": event.id,
            "sender": sender_to_dict(event.sender),
            "timestamp": event.timestamp.isoformat(),
            "stream_order": event.stream_order,
            "content": converted_to_dict(event.convert_message()),
            "log_context": event.log_context,
        }
    if isinstance(event, ChatResync):
        return {
            "type": "chat_resync",
            "portal_id": event.portal_key.id,
            "receiver": event.portal_key.receiver,
            "latest_message_ts": event.latest_message_ts.isoformat() if event.latest_message_ts else None,
            "chat_info": chat_info_to_dict(event.chat_info),
        }
    raise TypeError(f"unknown event type {type(event).__name__}")


def event_to_json(event) -> str:
    return json.dumps(event_to_dict(event), ensure_ascii=False)
