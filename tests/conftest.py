"""Shared test fixtures for bsky-bridge."""

import pytest

from bsky_bridge.bridge import MemoryEventQueue, MemoryStateSink, UserLogin
from bsky_bridge.client import BlueskyClient
from bsky_bridge.core import AuthInfo, LoginMetadata, RemoteProfile
from bsky_bridge.errors import StoreError
from bsky_bridge.store import JSONLoginStore

from bsky_fakes import ALICE, PDS, FakeBluesky, make_jwt


class CountingStore(JSONLoginStore):
    """JSON store that counts saves and can be told to fail."""

    def __init__(self, base_path):
        super().__init__(base_path)
        self.saves = 0
        self.fail = False

    def save(self, login):
        self.saves += 1
        if self.fail:
            raise StoreError("disk full")
        super().save(login)


@pytest.fixture
def fake_bsky():
    return FakeBluesky()


@pytest.fixture
def http_client(fake_bsky):
    client = fake_bsky.http_client()
    yield client
    client.close()


@pytest.fixture
def store(tmp_path):
    return CountingStore(tmp_path / "data")


@pytest.fixture
def events():
    return MemoryEventQueue()


@pytest.fixture
def states():
    return MemoryStateSink()


@pytest.fixture
def login(store, events, states):
    return UserLogin(
        id=ALICE,
        metadata=LoginMetadata(
            host=PDS,
            auth=AuthInfo(
                access_jwt=make_jwt(),
                refresh_jwt="refresh-token-1",
                handle="alice.test",
                did=ALICE,
            ),
            cursor="c0",
        ),
        store=store,
        events=events,
        states=states,
        remote_name="alice.test",
        remote_profile=RemoteProfile(email="alice@example.com", username="alice.test"),
    )


@pytest.fixture
def client(login, http_client):
    bc = BlueskyClient(login, http=http_client, poll_interval=0.05)
    yield bc
    bc.disconnect()
