"""Tests for sending messages and read receipts."""

from datetime import datetime, timezone

import pytest

from bsky_bridge.errors import MessageTooLongError, UnsupportedMessageTypeError
from bsky_bridge.outbound import MAX_TEXT_LENGTH, send_message, send_read_receipt

from bsky_fakes import ALICE, request_json

SEND = "chat.bsky.convo.sendMessage"
UPDATE_READ = "chat.bsky.convo.updateRead"


class TestSendMessage:
    def test_send_text(self, client, fake_bsky):
        fake_bsky.on(SEND, {
            "id": "m42",
            "rev": "r42",
            "text": "hello",
            "sender": {"did": ALICE},
            "sentAt": "2025-01-15T10:00:00Z",
        })
        sent = send_message(client, "convo1", "hello")

        assert request_json(fake_bsky.calls(SEND)[0]) == {"convoId": "convo1", "message": {"text": "hello"}}
        assert sent.id == "convo1:m42"
        assert sent.sender_id == "plc-alice123"
        assert sent.timestamp == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
        assert sent.stream_order == 1736935200000

    def test_non_text_rejected(self, client, fake_bsky):
        with pytest.raises(UnsupportedMessageTypeError):
            send_message(client, "convo1", "cat.png", msgtype="m.image")
        assert fake_bsky.requests == []

    def test_too_long_rejected(self, client, fake_bsky):
        with pytest.raises(MessageTooLongError):
            send_message(client, "convo1", "a" * (MAX_TEXT_LENGTH + 1))
        assert fake_bsky.requests == []

    def test_longest_allowed(self, client, fake_bsky):
        fake_bsky.on(SEND, {"id": "m1", "sender": {"did": ALICE}, "sentAt": "2025-01-15T10:00:00Z"})
        send_message(client, "convo1", "a" * MAX_TEXT_LENGTH)
        assert len(fake_bsky.calls(SEND)) == 1


class TestReadReceipt:
    def test_exact_message(self, client, fake_bsky):
        fake_bsky.on(UPDATE_READ, {"convo": {}})
        send_read_receipt(client, "convo1", "convo1:m42")
        assert request_json(fake_bsky.calls(UPDATE_READ)[0]) == {"convoId": "convo1", "messageId": "m42"}

    def test_whole_conversation(self, client, fake_bsky):
        fake_bsky.on(UPDATE_READ, {"convo": {}})
        send_read_receipt(client, "convo1")
        assert request_json(fake_bsky.calls(UPDATE_READ)[0]) == {"convoId": "convo1"}

    def test_undecodable_message_id(self, client, fake_bsky):
        fake_bsky.on(UPDATE_READ, {"convo": {}})
        send_read_receipt(client, "convo1", "garbage")
        assert request_json(fake_bsky.calls(UPDATE_READ)[0]) == {"convoId": "convo1"}
