"""A fake Bluesky XRPC server and builders for remote objects."""

import json
import threading
import time
from datetime import datetime, timedelta, timezone

import httpx
import jwt

ALICE = "did:plc:alice123"
BOB = "did:plc:bob456"
PDS = "https://pds.example.com"
NEW_PDS = "https://morel.us-east.host.bsky.network"


def make_jwt(expires_in: timedelta = timedelta(hours=2), sub: str = ALICE, scope: str = "com.atproto.access") -> str:
    exp = datetime.now(timezone.utc) + expires_in
    return jwt.encode({"sub": sub, "scope": scope, "exp": int(exp.timestamp())}, "test-secret", algorithm="HS256")


def did_doc(did: str = ALICE, pds: str = PDS, handle: str = "alice.test") -> dict:
    return {
        "@context": ["https://www.w3.org/ns/did/v1"],
        "id": did,
        "alsoKnownAs": [f"at://{handle}"],
        "service": [{
            "id": "#atproto_pds",
            "type": "AtprotoPersonalDataServer",
            "serviceEndpoint": pds,
        }],
    }


def session_response(did: str = ALICE, handle: str = "alice.test", doc: dict | None = None, **extra) -> dict:
    resp = {
        "did": did,
        "handle": handle,
        "accessJwt": make_jwt(),
        "refreshJwt": make_jwt(timedelta(days=60), scope="com.atproto.refresh"),
        **extra,
    }
    if doc is not None:
        resp["didDoc"] = doc
    return resp


def message_view(msg_id: str, text: str, sender: str = BOB, sent_at: str = "2025-01-15T10:00:00.000Z") -> dict:
    return {
        "$type": "chat.bsky.convo.defs#messageView",
        "id": msg_id,
        "rev": f"rev-{msg_id}",
        "text": text,
        "sender": {"did": sender},
        "sentAt": sent_at,
    }


def deleted_view(msg_id: str, sender: str = BOB, sent_at: str = "2025-01-15T10:00:00.000Z") -> dict:
    return {
        "$type": "chat.bsky.convo.defs#deletedMessageView",
        "id": msg_id,
        "rev": f"rev-{msg_id}",
        "sender": {"did": sender},
        "sentAt": sent_at,
    }


def log_create(convo_id: str, message: dict, rev: str = "rev-1") -> dict:
    return {
        "$type": "chat.bsky.convo.defs#logCreateMessage",
        "convoId": convo_id,
        "rev": rev,
        "message": message,
    }


def convo_view(convo_id: str, members: list[str] | None = None, unread: int = 0, last_message: dict | None = None, **extra) -> dict:
    members = members if members is not None else [ALICE, BOB]
    view = {
        "id": convo_id,
        "rev": "rev-convo",
        "members": [
            {"did": did, "handle": f"{did.rsplit(':', 1)[-1]}.test", "displayName": "", "avatar": ""}
            for did in members
        ],
        "muted": False,
        "unreadCount": unread,
        **extra,
    }
    if last_message is not None:
        view["lastMessage"] = last_message
    return view


def xrpc_error(status: int = 400, error: str = "InvalidRequest", message: str = "") -> httpx.Response:
    return httpx.Response(status, json={"error": error, "message": message})


class FakeBluesky:
    """Routes XRPC requests to canned responses.

    ``on(method, *responses)`` queues responses for a method. They are served
    in order and the last one keeps being served. A response may be a dict
    (HTTP 200 JSON body), an ``httpx.Response`` or a callable taking the
    request and returning either.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.routes: dict[str, list] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, *responses) -> None:
        with self._lock:
            self.routes[method] = list(responses)

    def calls(self, method: str) -> list[httpx.Request]:
        with self._lock:
            return [r for r in self.requests if r.url.path == f"/xrpc/{method}"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.removeprefix("/xrpc/")
        with self._lock:
            self.requests.append(request)
            responses = self.routes.get(method)
            if not responses:
                return xrpc_error(501, "MethodNotImplemented", method)
            resp = responses.pop(0) if len(responses) > 1 else responses[0]
        if callable(resp):
            resp = resp(request)
        if isinstance(resp, httpx.Response):
            return resp
        return httpx.Response(200, json=resp)

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content) if request.content else {}


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
