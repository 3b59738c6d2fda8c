"""Username and password login."""

import logging
import threading

import httpx

from .bridge import EventQueue, LoginStore, StateSink, UserLogin
from .client import BlueskyClient
from .core import AuthInfo, LoginMetadata, RemoteProfile, StateEvent
from .errors import BridgeError, IdentityError, LoginError, StoreError, XRPCError
from .identity import parse_did_doc
from .ids import make_user_login_id
from .xrpc import XRPCClient, new_http_client, server_create_session

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "bsky.social"


class PasswordLogin:
    """Log in with a handle (or email) and password."""

    def __init__(self, store: LoginStore, events: EventQueue, states: StateSink, http: httpx.Client | None = None):
        self.store = store
        self.events = events
        self.states = states
        self.http = http or new_http_client()

    def submit(self, domain: str, username: str, password: str, start_sync: bool = True) -> BlueskyClient:
        """Create a session and persist the new login.

        With ``start_sync`` the inbox is resynced and polling started in the
        background once the login is saved.
        """
        cli = XRPCClient(f"https://{domain or DEFAULT_SERVER}", http=self.http)
        try:
            resp = server_create_session(cli, username, password)
        except XRPCError as e:
            raise LoginError(f"failed to create session: {e}") from e

        pds_endpoint = ""
        if resp.get("didDoc") is not None:
            try:
                pds_endpoint = parse_did_doc(resp["didDoc"]).pds_endpoint()
            except IdentityError as e:
                raise LoginError(f"failed to parse DID doc: {e}") from e
        if not pds_endpoint:
            pds_endpoint = cli.host
        else:
            logger.debug("Login response contained PDS endpoint %s", pds_endpoint)

        did, handle = resp.get("did", ""), resp.get("handle", "")
        login = UserLogin(
            id=make_user_login_id(did),
            metadata=LoginMetadata(
                host=pds_endpoint,
                auth=AuthInfo(
                    access_jwt=resp.get("accessJwt", ""),
                    refresh_jwt=resp.get("refreshJwt", ""),
                    handle=handle,
                    did=did,
                ),
            ),
            store=self.store,
            events=self.events,
            states=self.states,
            remote_name=handle,
            remote_profile=RemoteProfile(email=resp.get("email") or "", username=handle),
        )
        try:
            login.save()
        except StoreError as e:
            raise LoginError(f"failed to save new login: {e}") from e
        logger.info("Logged in as %s (%s)", handle, did)

        client = BlueskyClient(login, http=self.http)
        login.send_state(StateEvent.CONNECTING)
        if start_sync:
            threading.Thread(target=_start_after_login, args=(client,), daemon=True).start()
        return client


def _start_after_login(client: BlueskyClient) -> None:
    try:
        client.fetch_inbox()
    except BridgeError as e:
        logger.error("Failed to fetch inbox after login for %s: %s", client.login.id, e)
    client.start_polling()
