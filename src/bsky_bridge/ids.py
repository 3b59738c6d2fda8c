"""Conversions between Bluesky identifiers and bridge identifiers.

- User logins are keyed by the raw account DID.
- Ghost (user) IDs encode a DID as ``<method>-<value>``.
- Portal IDs are the Bluesky conversation ID as-is.
- Message IDs are ``<portal id>:<bluesky message id>``.

Decoders never raise. A malformed ID decodes to an empty string (or a pair of
empty strings) and callers have to reject the operation themselves.
"""

import re
from dataclasses import dataclass

from .errors import InvalidDIDError

_METHOD_RE = re.compile(r"^[a-z0-9]+$")


@dataclass(frozen=True)
class DID:
    """A parsed ``did:<method>:<value>`` identifier."""

    method: str
    value: str

    def __str__(self) -> str:
        return f"did:{self.method}:{self.value}"


def parse_did(raw: str) -> DID:
    """Parse a DID string, raising InvalidDIDError if it is malformed."""
    parts = raw.split(":", 2)
    if len(parts) != 3 or parts[0] != "did":
        raise InvalidDIDError(f"invalid DID {raw!r}: must be did:<method>:<value>")
    method, value = parts[1], parts[2]
    if not _METHOD_RE.match(method):
        raise InvalidDIDError(f"invalid DID {raw!r}: bad method {method!r}")
    if not value:
        raise InvalidDIDError(f"invalid DID {raw!r}: empty method-specific value")
    return DID(method=method, value=value)


def make_user_login_id(did: str) -> str:
    return did


def parse_user_login_id(login_id: str) -> str:
    return login_id


def make_user_id(did: DID) -> str:
    return f"{did.method}-{did.value}"


def make_user_id_from_string(raw_did: str) -> str:
    """Encode a raw DID string as a ghost ID, raising InvalidDIDError."""
    return make_user_id(parse_did(raw_did))


def parse_user_id(user_id: str) -> str:
    """Decode a ghost ID back to a DID string, or ``""`` if it has no separator."""
    parts = user_id.split("-", 1)
    if len(parts) != 2:
        return ""
    return f"did:{parts[0]}:{parts[1]}"


def make_portal_id(convo_id: str) -> str:
    return convo_id


def parse_portal_id(portal_id: str) -> str:
    return portal_id


def make_message_id(portal_id: str, msg_id: str) -> str:
    return f"{portal_id}:{msg_id}"


def parse_message_id(message_id: str) -> tuple[str, str]:
    """Split a message ID into ``(portal_id, msg_id)``, or ``("", "")``."""
    parts = message_id.split(":", 1)
    if len(parts) != 2:
        return "", ""
    return parts[0], parts[1]
