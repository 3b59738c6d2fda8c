"""FastAPI app for inspecting and driving bridged logins."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from . import __version__
from .backfill import fetch_messages
from .bridge import MemoryEventQueue, MemoryStateSink, UserLogin
from .client import BlueskyClient
from .core import ChatResync, FetchMessagesParams
from .errors import BackfillNotSupportedError, BridgeError, MessageTooLongError, UnsupportedMessageTypeError
from .export import event_to_dict
from .outbound import send_message, send_read_receipt
from .store import JSONLoginStore
from .translate import make_portal_key, parse_datetime

logger = logging.getLogger(__name__)

# Delivery queue and state sink shared by every login served by this process
_events = MemoryEventQueue()
_states = MemoryStateSink()

# Client cache (populated on first use)
_clients: dict[str, BlueskyClient] | None = None


def load_clients(store: JSONLoginStore | None = None) -> dict[str, BlueskyClient]:
    """Build a client for every stored login. Nothing is connected yet."""
    store = store or JSONLoginStore()
    clients = {}
    for record in store.load_all():
        login = UserLogin.from_record(record, store, _events, _states)
        clients[login.id] = BlueskyClient(login)
    return clients


def _get_clients() -> dict[str, BlueskyClient]:
    """Lazily load and cache clients."""
    global _clients
    if _clients is None:
        _clients = load_clients()
        logger.info("Loaded logins: %s", list(_clients))
    return _clients


def _find_client(login_id: str) -> BlueskyClient:
    client = _get_clients().get(login_id)
    if client is None:
        raise HTTPException(status_code=404, detail=f"Unknown login: {login_id}")
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    clients = _get_clients()
    for client in clients.values():
        await asyncio.to_thread(client.connect)
    yield
    for client in clients.values():
        client.disconnect()


app = FastAPI(title="bsky-bridge", version=__version__, lifespan=lifespan)


class SendRequest(BaseModel):
    text: str
    msgtype: str = "m.text"


class ReadRequest(BaseModel):
    message_id: str | None = None


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/logins")
async def get_logins():
    """Return every loaded login and its latest connectivity state."""
    result = []
    for login_id, client in _get_clients().items():
        login = client.login
        state = login.bridge_state
        result.append({
            "id": login_id,
            "handle": login.remote_name,
            "host": login.metadata.host,
            "state": state.state_event.value if state else None,
            "error": state.error if state else "",
        })
    return result


@app.get("/api/logins/{login_id}/events")
async def get_events(login_id: str, offset: int = Query(0, ge=0)):
    """Return events queued for a login, starting at ``offset``."""
    _find_client(login_id)
    events = _events.events_for(login_id, offset)
    return {
        "offset": offset,
        "events": [event_to_dict(e) for e in events],
    }


@app.get("/api/chats/{login_id}/{portal_id}/messages")
def get_messages(
    login_id: str,
    portal_id: str,
    count: int = Query(50, ge=1, le=1000),
    forward: bool = Query(True, description="Only forward backfill is supported"),
    after: str | None = Query(None, description="Only return messages sent after this ISO 8601 time"),
):
    """Backfill messages of a conversation."""
    client = _find_client(login_id)

    anchor = None
    if after:
        try:
            anchor = parse_datetime(after)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid timestamp: {after}")

    params = FetchMessagesParams(
        portal_key=make_portal_key(login_id, portal_id),
        count=count,
        forward=forward,
        anchor_timestamp=anchor,
        bundled_data=_latest_convo_view(login_id, portal_id),
    )
    try:
        resp = fetch_messages(client, params)
    except BackfillNotSupportedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BridgeError as e:
        logger.error("Failed to backfill %s for %s: %s", portal_id, login_id, e)
        raise HTTPException(status_code=502, detail="Failed to fetch messages")

    return {
        "portal_id": portal_id,
        "mark_read": resp.mark_read,
        "messages": [
            {
                "id": m.id,
                "sender": m.sender.sender,
                "is_from_me": m.sender.is_from_me,
                "timestamp": m.timestamp.isoformat(),
                "stream_order": m.stream_order,
                "content": [{"msgtype": p.msgtype, "body": p.body} for p in m.converted.parts],
            }
            for m in resp.messages
        ],
    }


@app.post("/api/chats/{login_id}/{portal_id}/messages")
def post_message(login_id: str, portal_id: str, req: SendRequest):
    """Send a text message."""
    client = _find_client(login_id)
    try:
        sent = send_message(client, portal_id, req.text, req.msgtype)
    except (UnsupportedMessageTypeError, MessageTooLongError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BridgeError as e:
        logger.error("Failed to send message to %s for %s: %s", portal_id, login_id, e)
        raise HTTPException(status_code=502, detail="Failed to send message")
    return {
        "id": sent.id,
        "sender": sent.sender_id,
        "timestamp": sent.timestamp.isoformat(),
        "stream_order": sent.stream_order,
    }


@app.post("/api/chats/{login_id}/{portal_id}/read")
def post_read_receipt(login_id: str, portal_id: str, req: ReadRequest):
    """Mark a conversation as read."""
    client = _find_client(login_id)
    try:
        send_read_receipt(client, portal_id, req.message_id)
    except BridgeError as e:
        logger.error("Failed to send read receipt to %s for %s: %s", portal_id, login_id, e)
        raise HTTPException(status_code=502, detail="Failed to send read receipt")
    return {"ok": True}


def _latest_convo_view(login_id: str, portal_id: str) -> dict | None:
    """Return the conversation view from the latest resync of a portal."""
    for event in reversed(_events.events_for(login_id)):
        if isinstance(event, ChatResync) and event.portal_key.id == portal_id:
            return event.bundled_backfill_data
    return None
