"""Session management for one Bluesky login.

A :class:`BlueskyClient` owns the XRPC clients for a login, keeps its tokens
fresh and follows the account if its PDS moves. Inbox polling itself lives in
:mod:`bsky_bridge.sync`.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

import httpx
import jwt

from .bridge import UserLogin
from .chatinfo import wrap_chat_info
from .config import get_poll_interval
from .core import AuthInfo, ChatResync, RoomFeatures, StateEvent
from .errors import BridgeError, IdentityError, LoginError, LoginMismatchError, StoreError, XRPCError
from .identity import parse_did_doc
from .ids import parse_user_id
from .outbound import ROOM_FEATURES
from .sync import TOKEN_REFRESH_FAILED, PollHandle, SyncLoop
from .translate import make_portal_key, parse_datetime, parse_message_union
from .xrpc import (
    CHAT_PROXY_HEADER,
    CHAT_PROXY_TARGET,
    XRPCClient,
    convo_list_convos,
    new_http_client,
    server_delete_session,
    server_refresh_session,
)

logger = logging.getLogger(__name__)

INBOX_FETCH_LIMIT = 20
EXPIRY_FALLBACK = timedelta(minutes=10)


class BlueskyClient:
    """Network client for one logged-in Bluesky account."""

    def __init__(self, login: UserLogin, http: httpx.Client | None = None, poll_interval: float | None = None):
        meta = login.metadata
        self.login = login
        self.http = http or new_http_client()
        self.xrpc = XRPCClient(meta.host, meta.auth, http=self.http)
        self.chat_rpc = XRPCClient(
            meta.host,
            meta.auth,
            http=self.http,
            headers={CHAT_PROXY_HEADER: CHAT_PROXY_TARGET},
        )
        self.poll_interval = poll_interval if poll_interval is not None else get_poll_interval()
        self._poll_lock = threading.Lock()
        self._polling: PollHandle | None = None

    # ── Lifecycle ────────────────────────────────────────────────────

    def connect(self) -> threading.Thread | None:
        """Check the session, resync the inbox and start polling.

        Returns the polling thread, or None if the token refresh failed, in
        which case the login is left in the unknown-error state.
        """
        self.login.send_state(StateEvent.CONNECTING)
        try:
            self.refresh_token()
        except BridgeError as e:
            logger.error("Failed to refresh token for %s: %s", self.login.id, e)
            self.login.send_state(StateEvent.UNKNOWN_ERROR, TOKEN_REFRESH_FAILED)
            return None
        try:
            self.fetch_inbox()
        except BridgeError as e:
            logger.error("Failed to fetch inbox during startup for %s: %s", self.login.id, e)
        return self.start_polling()

    def start_polling(self) -> threading.Thread:
        """Start the sync loop in a new thread, replacing any running loop.

        The previous loop is cancelled immediately and the new thread waits
        for it to return before it makes its first request.
        """
        handle = PollHandle()
        with self._poll_lock:
            previous, self._polling = self._polling, handle
        if previous is not None:
            previous.cancel()
        try:
            loop = SyncLoop(self, handle, previous)
            thread = threading.Thread(target=loop.run, name=f"bsky-poll-{self.login.id}", daemon=True)
            thread.start()
        except BaseException:
            # A loop that never runs must not block its successor
            handle.done.set()
            raise
        return thread

    def disconnect(self) -> None:
        with self._poll_lock:
            handle, self._polling = self._polling, None
        if handle is not None:
            handle.cancel()

    def is_logged_in(self) -> bool:
        return self.xrpc.auth is not None

    def is_this_user(self, user_id: str) -> bool:
        return self.is_logged_in() and parse_user_id(user_id) == self.xrpc.auth.did

    def get_capabilities(self, portal_id: str = "") -> RoomFeatures:
        # Every conversation has the same features
        return ROOM_FEATURES

    def logout(self) -> None:
        """Stop syncing and revoke the remote session."""
        self.disconnect()
        self.logout_remote()

    def logout_remote(self) -> None:
        """Delete the remote session. Failures are only logged."""
        if self.xrpc.auth is None:
            return
        try:
            server_delete_session(self.xrpc)
        except XRPCError as e:
            logger.error("Failed to delete session for %s: %s", self.login.id, e)

    # ── Credentials ──────────────────────────────────────────────────

    def refresh_token(self) -> None:
        """Swap the refresh token for a new token pair and persist it.

        Raises LoginMismatchError if the session now belongs to another
        account and StoreError if the new tokens couldn't be saved (they are
        already in use in memory at that point).
        """
        meta = self.login.metadata
        auth = meta.auth
        if auth is None:
            raise LoginError("not logged in")

        # refreshSession takes the refresh token as the bearer token
        refresh_client = XRPCClient(
            self.xrpc.host,
            AuthInfo(
                access_jwt=auth.refresh_jwt,
                refresh_jwt=auth.refresh_jwt,
                handle=auth.handle,
                did=auth.did,
            ),
            http=self.http,
            headers=self.xrpc.headers,
            user_agent=self.xrpc.user_agent,
        )
        resp = server_refresh_session(refresh_client)
        # TODO: check the account status in the response (takendown/suspended/deactivated)
        if resp.get("did") != auth.did:
            raise LoginMismatchError(f"DID changed from {auth.did} to {resp.get('did')}")
        access_jwt, refresh_jwt = resp.get("accessJwt"), resp.get("refreshJwt")
        if not access_jwt or not refresh_jwt:
            raise XRPCError("com.atproto.server.refreshSession", 200, "InvalidResponse", "missing tokens")
        auth.access_jwt = access_jwt
        auth.refresh_jwt = refresh_jwt

        # A response without a handle keeps the stored one
        handle = resp.get("handle", "")
        if handle and handle != auth.handle:
            logger.debug("Handle of %s changed from %s to %s", auth.did, auth.handle, handle)
            auth.handle = handle
            self.login.remote_name = handle
            self.login.remote_profile.username = handle

        if resp.get("didDoc") is not None:
            self._update_pds_endpoint(resp["didDoc"])

        try:
            self.login.save()
        except StoreError as e:
            raise StoreError(f"failed to save refreshed login: {e}") from e

    def next_access_token_expiry(self) -> datetime:
        """Read the expiry of the access token without verifying it.

        Falls back to ten minutes from now if the token can't be parsed.
        """
        auth = self.xrpc.auth
        try:
            claims = jwt.decode(auth.access_jwt, options={"verify_signature": False})
            return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (jwt.PyJWTError, AttributeError, KeyError, TypeError, ValueError, OverflowError):
            return datetime.now(timezone.utc) + EXPIRY_FALLBACK

    def _update_pds_endpoint(self, did_doc) -> None:
        meta = self.login.metadata
        try:
            ident = parse_did_doc(did_doc)
        except IdentityError as e:
            logger.warning("Failed to parse DID doc for %s: %s", self.login.id, e)
            return
        pds_endpoint = ident.pds_endpoint()
        if pds_endpoint and pds_endpoint != meta.host:
            logger.debug("PDS endpoint of %s changed from %s to %s", self.login.id, meta.host, pds_endpoint)
            meta.host = pds_endpoint
            self.xrpc.host = pds_endpoint
            self.chat_rpc.host = pds_endpoint

    # ── Inbox ────────────────────────────────────────────────────────

    def fetch_inbox(self) -> None:
        """Queue a chat resync for each of the most recent conversations."""
        # TODO: paginate past the first INBOX_FETCH_LIMIT conversations
        resp = convo_list_convos(self.chat_rpc, "", INBOX_FETCH_LIMIT)
        for convo in resp.get("convos") or []:
            convo_id = convo.get("id", "")
            self.login.queue_remote_event(ChatResync(
                portal_key=make_portal_key(self.login.id, convo_id),
                chat_info=wrap_chat_info(self, convo),
                latest_message_ts=_last_message_time(convo.get("lastMessage")),
                bundled_backfill_data=convo,
                log_context={"chat_id": convo_id},
            ))


def _last_message_time(last_message) -> datetime | None:
    """Return the send time of a last-message preview, live or deleted."""
    msg_view, deleted_view = parse_message_union(last_message)
    view = msg_view or deleted_view
    if view is None:
        return None
    try:
        return parse_datetime(view.sent_at)
    except ValueError:
        return None
