"""The per-login sync loop.

One loop runs per login, in its own thread. Each iteration polls the chat log
once and then waits for whichever comes first: the next poll tick, the token
refresh deadline (two minutes before the access token expires) or
cancellation.

The log cursor is only advanced after every entry of a batch has been queued,
and it is persisted right away, so a crash redelivers at most one batch.
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone

from .core import StateEvent
from .errors import StoreError
from .translate import handle_event
from .xrpc import convo_get_log

logger = logging.getLogger(__name__)

POLL_FAILED = "bsky-poll-failed"
TOKEN_REFRESH_FAILED = "bsky-token-refresh-failed"

REFRESH_MARGIN = timedelta(minutes=2)
REFRESH_RETRY_DELAY = 30.0

_TICK = "tick"
_EXPIRY = "expiry"
_CANCELLED = "cancelled"


class PollHandle:
    """Cancellation handle for one loop.

    ``stopped`` asks the loop to stop. ``done`` is set once the loop has
    returned, or right away if it never got to run.
    """

    def __init__(self):
        self.stopped = threading.Event()
        self.done = threading.Event()

    def cancel(self) -> None:
        self.stopped.set()

    @property
    def cancelled(self) -> bool:
        return self.stopped.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the loop has returned."""
        return self.done.wait(timeout)


def poll_once(client) -> None:
    """Fetch new log entries, queue them and advance the cursor."""
    login = client.login
    meta = login.metadata
    resp = convo_get_log(client.chat_rpc, meta.cursor)
    for entry in resp.get("logs") or []:
        if isinstance(entry, dict):
            handle_event(login, entry)
    cursor = resp.get("cursor")
    if cursor is not None and cursor != meta.cursor:
        meta.cursor = cursor
        try:
            login.save()
        except StoreError as e:
            raise StoreError(f"failed to save updated polling cursor: {e}") from e


def refresh_delay(client, now: datetime | None = None) -> float:
    """Seconds until the token should be refreshed. Negative means overdue."""
    if now is None:
        now = datetime.now(timezone.utc)
    return (client.next_access_token_expiry() - REFRESH_MARGIN - now).total_seconds()


class SyncLoop:
    """Polling loop bound to one client and one cancellation handle."""

    def __init__(self, client, handle: PollHandle, previous: PollHandle | None = None):
        self.client = client
        self.handle = handle
        self.previous = previous
        self.interval = client.poll_interval
        self._next_tick = 0.0
        self._refresh_at = 0.0

    def run(self) -> None:
        try:
            if self.previous is not None:
                self.previous.cancel()
                self.previous.wait()
                self.previous = None
            if self.handle.cancelled:
                return
            self._loop()
        finally:
            self.handle.done.set()

    def _loop(self) -> None:
        client = self.client
        login = client.login
        handle = self.handle
        logger.info("Starting polling for %s (next token expiry %s)",
                    login.id, client.next_access_token_expiry().isoformat())
        now = time.monotonic()
        self._next_tick = now + self.interval
        self._refresh_at = now + refresh_delay(client)
        is_erroring = True
        try:
            while not handle.cancelled:
                try:
                    poll_once(client)
                except Exception as e:
                    if handle.cancelled:
                        return
                    is_erroring = True
                    logger.error("Failed to poll for messages for %s: %s", login.id, e)
                    login.send_state(StateEvent.TRANSIENT_DISCONNECT, POLL_FAILED)
                    # TODO: back off after consecutive poll failures
                else:
                    if handle.cancelled:
                        return
                    if is_erroring:
                        is_erroring = False
                        login.send_state(StateEvent.CONNECTED)

                fired = self._wait()
                if fired == _CANCELLED:
                    return
                if fired == _EXPIRY:
                    self._refresh()
        finally:
            logger.debug("Stopped polling for %s", login.id)

    def _refresh(self) -> None:
        client = self.client
        try:
            client.refresh_token()
        except Exception as e:
            logger.error("Failed to refresh token for %s: %s", client.login.id, e)
            self._refresh_at = time.monotonic() + REFRESH_RETRY_DELAY
            if not self.handle.cancelled:
                client.login.send_state(StateEvent.UNKNOWN_ERROR, TOKEN_REFRESH_FAILED)
        else:
            logger.debug("Refreshed token for %s, next expiry %s",
                         client.login.id, client.next_access_token_expiry().isoformat())
            self._refresh_at = time.monotonic() + refresh_delay(client)
            if not self.handle.cancelled:
                client.login.send_state(StateEvent.CONNECTED)

    def _wait(self) -> str:
        """Block until the next timer fires or the loop is cancelled."""
        stopped = self.handle.stopped
        now = time.monotonic()
        if self._refresh_at <= self._next_tick:
            if stopped.wait(max(0.0, self._refresh_at - now)):
                return _CANCELLED
            return _EXPIRY
        if stopped.wait(max(0.0, self._next_tick - now)):
            return _CANCELLED
        # Like a ticker, missed ticks collapse into one
        self._next_tick = max(self._next_tick + self.interval, time.monotonic())
        return _TICK
