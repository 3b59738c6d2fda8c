"""Contracts between the Bluesky connector and the bridge that hosts it.

The hosting bridge owns delivery (an event queue), connectivity reporting (a
state sink) and durability (a login store). :class:`UserLogin` ties one
logged-in account to those three collaborators.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Union

from .core import BridgeState, ChatResync, LoginMetadata, RemoteMessage, RemoteProfile, StateEvent

RemoteEvent = Union[RemoteMessage, ChatResync]


class EventQueue(ABC):
    """Ingress of the delivery framework."""

    @abstractmethod
    def queue_remote_event(self, login: "UserLogin", event: RemoteEvent) -> None:
        """Accept one translated event. Raising makes the caller redeliver it later."""
        ...


class StateSink(ABC):
    """Receiver of connectivity state reports."""

    @abstractmethod
    def send(self, login: "UserLogin", state: BridgeState) -> None:
        ...


class LoginStore(ABC):
    """Durable storage for logins.

    ``save`` must be synchronous: when it returns, the login is durable. Any
    failure is raised as StoreError.
    """

    @abstractmethod
    def save(self, login: "UserLogin") -> None:
        ...

    @abstractmethod
    def load_all(self) -> list[dict]:
        """Return the stored records, as produced by ``UserLogin.to_record``."""
        ...

    @abstractmethod
    def delete(self, login_id: str) -> None:
        ...


class UserLogin:
    """One logged-in Bluesky account and its bridge-side collaborators."""

    def __init__(
        self,
        id: str,
        metadata: LoginMetadata,
        store: LoginStore,
        events: EventQueue,
        states: StateSink,
        remote_name: str = "",
        remote_profile: RemoteProfile | None = None,
    ):
        self.id = id
        self.metadata = metadata
        self.store = store
        self.events = events
        self.states = states
        self.remote_name = remote_name
        self.remote_profile = remote_profile or RemoteProfile()
        self.bridge_state: BridgeState | None = None

    def save(self) -> None:
        self.store.save(self)

    def queue_remote_event(self, event: RemoteEvent) -> None:
        self.events.queue_remote_event(self, event)

    def send_state(self, state_event: StateEvent, error: str = "") -> None:
        state = BridgeState(state_event=state_event, error=error, timestamp=datetime.now(timezone.utc))
        self.bridge_state = state
        self.states.send(self, state)

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "remote_name": self.remote_name,
            "remote_profile": {
                "email": self.remote_profile.email,
                "username": self.remote_profile.username,
            },
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_record(
        cls, record: dict, store: LoginStore, events: EventQueue, states: StateSink,
    ) -> "UserLogin":
        return cls(
            id=record["id"],
            metadata=LoginMetadata.from_dict(record.get("metadata", {})),
            store=store,
            events=events,
            states=states,
            remote_name=record.get("remote_name", ""),
            remote_profile=RemoteProfile(**record.get("remote_profile", {})),
        )


class MemoryEventQueue(EventQueue):
    """Thread-safe in-memory event queue.

    Message events are idempotent by message ID: redelivering a message that
    is already queued is a no-op.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._events: dict[str, list[RemoteEvent]] = {}
        self._seen: set[tuple[str, str]] = set()

    def queue_remote_event(self, login: UserLogin, event: RemoteEvent) -> None:
        with self._lock:
            if isinstance(event, RemoteMessage):
                key = (login.id, event.id)
                if key in self._seen:
                    return
                self._seen.add(key)
            self._events.setdefault(login.id, []).append(event)

    def events_for(self, login_id: str, offset: int = 0) -> list[RemoteEvent]:
        with self._lock:
            return list(self._events.get(login_id, [])[offset:])

    def messages_for(self, login_id: str) -> list[RemoteMessage]:
        return [e for e in self.events_for(login_id) if isinstance(e, RemoteMessage)]


class MemoryStateSink(StateSink):
    """Keeps every state report, per login."""

    def __init__(self):
        self._lock = threading.Lock()
        self.history: dict[str, list[BridgeState]] = {}

    def send(self, login: UserLogin, state: BridgeState) -> None:
        with self._lock:
            self.history.setdefault(login.id, []).append(state)

    def states_for(self, login_id: str) -> list[StateEvent]:
        with self._lock:
            return [s.state_event for s in self.history.get(login_id, [])]
