"""Conversation and profile metadata for portals and ghosts."""

import logging

import httpx

from .config import format_displayname
from .core import Avatar, ChatInfo, ChatMember, UserInfo
from .errors import BridgeError, InvalidDIDError
from .ids import parse_portal_id, parse_user_id
from .translate import make_event_sender
from .xrpc import actor_get_profile, convo_get_convo

logger = logging.getLogger(__name__)


def get_chat_info(client, portal_id: str) -> ChatInfo:
    resp = convo_get_convo(client.chat_rpc, parse_portal_id(portal_id))
    return wrap_chat_info(client, resp.get("convo") or {})


def wrap_chat_info(client, convo: dict) -> ChatInfo:
    """Convert a ``convoView`` dict into ChatInfo.

    Members whose DID doesn't parse are left out and the member list is then
    marked as incomplete.
    """
    members = convo.get("members") or []
    info = ChatInfo(
        total_member_count=len(members),
        is_dm=len(members) == 2,
        muted_forever=bool(convo.get("muted")),
    )
    for member in members:
        did = member.get("did", "")
        try:
            sender = make_event_sender(client.login.id, did)
        except InvalidDIDError as e:
            logger.error("Failed to parse member DID %r in %s: %s", did, convo.get("id", ""), e)
            info.members_full = False
            continue
        handle = member.get("handle", "")
        info.members[sender.sender] = ChatMember(
            sender=sender,
            user_info=UserInfo(
                identifiers=[did, f"bluesky:{handle}"],
                name=format_displayname(member.get("displayName") or "", handle, did),
                avatar=wrap_avatar(client, member.get("avatar") or ""),
            ),
        )
    return info


def get_user_info(client, user_id: str) -> UserInfo:
    """Fetch the profile behind a ghost ID."""
    actor = parse_user_id(user_id)
    if not actor:
        raise BridgeError("failed to parse ghost ID")
    profile = actor_get_profile(client.xrpc, actor)
    did = profile.get("did", "")
    handle = profile.get("handle", "")
    return UserInfo(
        identifiers=[did, f"bluesky:{handle}"],
        name=format_displayname(profile.get("displayName") or "", handle, did),
        avatar=wrap_avatar(client, profile.get("avatar") or ""),
    )


def wrap_avatar(client, url: str) -> Avatar:
    """Return an avatar that downloads ``url`` lazily. An empty URL means remove."""

    def get() -> bytes:
        try:
            resp = client.http.get(url, headers={"User-Agent": client.xrpc.user_agent})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise BridgeError(f"failed to download avatar: {e}") from e
        return resp.content

    return Avatar(id=url, get=get, remove=url == "")
