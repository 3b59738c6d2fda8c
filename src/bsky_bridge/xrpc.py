"""Minimal XRPC client for the Bluesky methods the bridge uses.

Each remote method is a plain function taking an :class:`XRPCClient`, so a
second client with different auth or headers (the refresh client, the chat
proxy client) can be passed to the same call.
"""

import logging
from typing import Any

import httpx

from .config import get_user_agent
from .core import AuthInfo
from .errors import XRPCError

logger = logging.getLogger(__name__)

CHAT_PROXY_HEADER = "Atproto-Proxy"
CHAT_PROXY_TARGET = "did:web:api.bsky.chat#bsky_chat"

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def new_http_client() -> httpx.Client:
    """Return an HTTP client with retries on connection failures."""
    return httpx.Client(
        timeout=DEFAULT_TIMEOUT,
        transport=httpx.HTTPTransport(retries=3),
        follow_redirects=True,
    )


class XRPCClient:
    """An XRPC endpoint (``host``) plus the credentials to call it with."""

    def __init__(
        self,
        host: str,
        auth: AuthInfo | None = None,
        http: httpx.Client | None = None,
        headers: dict[str, str] | None = None,
        user_agent: str | None = None,
    ):
        self.host = host.rstrip("/")
        self.auth = auth
        self.http = http or new_http_client()
        self.headers = dict(headers or {})
        self.user_agent = user_agent or get_user_agent()

    def query(self, method: str, params: dict[str, Any] | None = None) -> dict:
        """Call an XRPC query (HTTP GET). ``None`` params are dropped."""
        clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        return self._do("GET", method, params=clean)

    def procedure(self, method: str, body: dict[str, Any] | None = None) -> dict:
        """Call an XRPC procedure (HTTP POST)."""
        return self._do("POST", method, json=body)

    # ── Private helpers ──────────────────────────────────────────────

    def _request_headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent, **self.headers}
        if self.auth is not None and self.auth.access_jwt:
            headers["Authorization"] = f"Bearer {self.auth.access_jwt}"
        return headers

    def _do(self, http_method: str, method: str, **kwargs) -> dict:
        url = f"{self.host}/xrpc/{method}"
        try:
            resp = self.http.request(http_method, url, headers=self._request_headers(), **kwargs)
        except httpx.HTTPError as e:
            raise XRPCError(method, message=str(e)) from e

        if resp.status_code >= 400:
            error, message = "", ""
            try:
                data = resp.json()
                if isinstance(data, dict):
                    error = data.get("error", "")
                    message = data.get("message", "")
            except ValueError:
                message = resp.text[:200]
            raise XRPCError(method, resp.status_code, error, message)

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise XRPCError(method, resp.status_code, "InvalidResponse", "response is not JSON") from e
        if not isinstance(data, dict):
            raise XRPCError(method, resp.status_code, "InvalidResponse", "response is not an object")
        return data


# ── com.atproto.server ───────────────────────────────────────────


def server_create_session(cli: XRPCClient, identifier: str, password: str) -> dict:
    return cli.procedure("com.atproto.server.createSession", {
        "identifier": identifier,
        "password": password,
    })


def server_refresh_session(cli: XRPCClient) -> dict:
    """Refresh a session. ``cli`` must carry the refresh JWT as its bearer token."""
    return cli.procedure("com.atproto.server.refreshSession")


def server_delete_session(cli: XRPCClient) -> dict:
    return cli.procedure("com.atproto.server.deleteSession")


# ── chat.bsky.convo ──────────────────────────────────────────────


def convo_get_log(cli: XRPCClient, cursor: str = "") -> dict:
    return cli.query("chat.bsky.convo.getLog", {"cursor": cursor})


def convo_list_convos(cli: XRPCClient, cursor: str = "", limit: int = 50) -> dict:
    return cli.query("chat.bsky.convo.listConvos", {"cursor": cursor, "limit": limit})


def convo_get_convo(cli: XRPCClient, convo_id: str) -> dict:
    return cli.query("chat.bsky.convo.getConvo", {"convoId": convo_id})


def convo_get_messages(cli: XRPCClient, convo_id: str, cursor: str = "", limit: int = 50) -> dict:
    return cli.query("chat.bsky.convo.getMessages", {
        "convoId": convo_id,
        "cursor": cursor,
        "limit": limit,
    })


def convo_send_message(cli: XRPCClient, convo_id: str, text: str) -> dict:
    return cli.procedure("chat.bsky.convo.sendMessage", {
        "convoId": convo_id,
        "message": {"text": text},
    })


def convo_update_read(cli: XRPCClient, convo_id: str, message_id: str | None = None) -> dict:
    body: dict[str, Any] = {"convoId": convo_id}
    if message_id:
        body["messageId"] = message_id
    return cli.procedure("chat.bsky.convo.updateRead", body)


# ── app.bsky.actor ───────────────────────────────────────────────


def actor_get_profile(cli: XRPCClient, actor: str) -> dict:
    return cli.query("app.bsky.actor.getProfile", {"actor": actor})
