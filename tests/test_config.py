"""Tests for environment configuration."""

import logging
from pathlib import Path

import pytest

from bsky_bridge import __version__
from bsky_bridge.config import (
    format_displayname,
    get_data_path,
    get_poll_interval,
    get_user_agent,
)


class TestDataPath:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BSKY_BRIDGE_DATA_PATH", str(tmp_path))
        assert get_data_path() == tmp_path

    def test_linux_default(self, monkeypatch):
        monkeypatch.delenv("BSKY_BRIDGE_DATA_PATH", raising=False)
        monkeypatch.setattr("sys.platform", "linux")
        assert get_data_path() == Path.home() / ".local" / "share" / "bsky-bridge"


class TestPollInterval:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("BSKY_BRIDGE_POLL_INTERVAL", raising=False)
        assert get_poll_interval() == 5.0

    def test_override(self, monkeypatch):
        monkeypatch.setenv("BSKY_BRIDGE_POLL_INTERVAL", "0.5")
        assert get_poll_interval() == 0.5

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_invalid_falls_back(self, monkeypatch, caplog, value):
        monkeypatch.setenv("BSKY_BRIDGE_POLL_INTERVAL", value)
        with caplog.at_level(logging.WARNING, logger="bsky_bridge.config"):
            assert get_poll_interval() == 5.0
        assert "BSKY_BRIDGE_POLL_INTERVAL" in caplog.text


def test_user_agent(monkeypatch):
    monkeypatch.delenv("BSKY_BRIDGE_USER_AGENT", raising=False)
    assert get_user_agent() == f"bsky-bridge/{__version__}"
    monkeypatch.setenv("BSKY_BRIDGE_USER_AGENT", "mybridge/1.0")
    assert get_user_agent() == "mybridge/1.0"


class TestDisplayname:
    def test_default_template(self, monkeypatch):
        monkeypatch.delenv("BSKY_BRIDGE_DISPLAYNAME_TEMPLATE", raising=False)
        assert format_displayname("Alice", "alice.test", "did:plc:alice123") == "Alice"

    def test_falls_back_to_handle(self):
        assert format_displayname("", "alice.test", "did:plc:alice123", template="{name}") == "alice.test"

    def test_custom_template(self, monkeypatch):
        monkeypatch.setenv("BSKY_BRIDGE_DISPLAYNAME_TEMPLATE", "{name} (@{handle}) [Bluesky]")
        assert format_displayname("Alice", "alice.test", "did:plc:alice123") == "Alice (@alice.test) [Bluesky]"
