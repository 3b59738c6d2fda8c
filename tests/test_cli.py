"""Tests for the command line interface."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from bsky_bridge.cli import main
from bsky_bridge.errors import LoginError
from bsky_bridge.store import JSONLoginStore

from bsky_fakes import ALICE


@pytest.fixture
def data_path(tmp_path, monkeypatch):
    monkeypatch.setenv("BSKY_BRIDGE_DATA_PATH", str(tmp_path))
    return tmp_path


def test_logins_empty(data_path):
    result = CliRunner().invoke(main, ["logins"])
    assert result.exit_code == 0
    assert "No stored logins." in result.output


def test_logins_lists_stored(data_path, login):
    JSONLoginStore(data_path).save(login)
    result = CliRunner().invoke(main, ["logins"])
    assert result.exit_code == 0
    assert ALICE in result.output
    assert "alice.test" in result.output


def test_login_failure(data_path):
    with patch("bsky_bridge.cli.PasswordLogin.submit", side_effect=LoginError("failed to create session: nope")):
        result = CliRunner().invoke(main, ["login", "--username", "alice.test", "--password", "wrong"])
    assert result.exit_code != 0
    assert "failed to create session" in result.output


def test_logout(data_path, login):
    JSONLoginStore(data_path).save(login)
    with patch("bsky_bridge.cli.BlueskyClient.logout") as logout:
        result = CliRunner().invoke(main, ["logout", ALICE])
    assert result.exit_code == 0
    logout.assert_called_once()
    assert JSONLoginStore(data_path).load_all() == []


def test_logout_unknown(data_path):
    result = CliRunner().invoke(main, ["logout", ALICE])
    assert result.exit_code != 0
    assert "Unknown login" in result.output
