"""Environment-based configuration for the bridge."""

import logging
import os
import sys
from pathlib import Path

from . import __version__

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_DISPLAYNAME_TEMPLATE = "{name}"


def get_data_path() -> Path:
    """Return the directory where logins are stored."""
    env = os.environ.get("BSKY_BRIDGE_DATA_PATH")
    if env:
        return Path(env)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "bsky-bridge"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "bsky-bridge"
    else:  # Linux
        return Path.home() / ".local" / "share" / "bsky-bridge"


def get_poll_interval() -> float:
    """Return the number of seconds between log polls."""
    env = os.environ.get("BSKY_BRIDGE_POLL_INTERVAL")
    if not env:
        return DEFAULT_POLL_INTERVAL
    try:
        value = float(env)
    except ValueError:
        logger.warning("Invalid BSKY_BRIDGE_POLL_INTERVAL %r, using %s", env, DEFAULT_POLL_INTERVAL)
        return DEFAULT_POLL_INTERVAL
    if value <= 0:
        logger.warning("BSKY_BRIDGE_POLL_INTERVAL must be positive, using %s", DEFAULT_POLL_INTERVAL)
        return DEFAULT_POLL_INTERVAL
    return value


def get_displayname_template() -> str:
    return os.environ.get("BSKY_BRIDGE_DISPLAYNAME_TEMPLATE") or DEFAULT_DISPLAYNAME_TEMPLATE


def get_user_agent() -> str:
    return os.environ.get("BSKY_BRIDGE_USER_AGENT") or f"bsky-bridge/{__version__}"


def format_displayname(display_name: str, handle: str, did: str, template: str | None = None) -> str:
    """Render a ghost display name.

    Template fields: ``name`` (display name, or the handle if that is empty),
    ``display_name``, ``handle`` and ``did``.
    """
    if template is None:
        template = get_displayname_template()
    return template.format(
        name=display_name or handle,
        display_name=display_name,
        handle=handle,
        did=did,
    )
