"""DID document parsing.

Only the parts the bridge needs are read: the DID itself, the handle claimed
through ``alsoKnownAs`` and the service list, which is where the account's
PDS endpoint is advertised.
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from .errors import IdentityError

PDS_SERVICE_ID = "#atproto_pds"
PDS_SERVICE_TYPE = "AtprotoPersonalDataServer"


@dataclass
class Identity:
    did: str
    handle: str = ""
    services: dict[str, tuple[str, str]] = field(default_factory=dict)  # id -> (type, endpoint)

    def pds_endpoint(self) -> str:
        """Return the advertised PDS URL, or ``""`` if there is no usable one."""
        service = self.services.get(PDS_SERVICE_ID)
        if not service:
            return ""
        service_type, endpoint = service
        if service_type != PDS_SERVICE_TYPE:
            return ""
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return ""
        return endpoint.rstrip("/")


def parse_did_doc(doc: Any) -> Identity:
    """Parse a DID document dict into an Identity."""
    if not isinstance(doc, dict):
        raise IdentityError(f"DID document must be an object, got {type(doc).__name__}")

    did = doc.get("id")
    if not isinstance(did, str) or not did:
        raise IdentityError("DID document has no id")

    handle = ""
    for aka in doc.get("alsoKnownAs") or []:
        if isinstance(aka, str) and aka.startswith("at://"):
            handle = aka[len("at://"):]
            break

    services = {}
    for svc in doc.get("service") or []:
        if not isinstance(svc, dict):
            continue
        svc_id = svc.get("id", "")
        endpoint = svc.get("serviceEndpoint")
        if not isinstance(svc_id, str) or not isinstance(endpoint, str):
            continue
        # Service IDs may be relative ("#atproto_pds") or absolute ("did:...#atproto_pds")
        if svc_id.startswith(did):
            svc_id = svc_id[len(did):]
        services[svc_id] = (svc.get("type", ""), endpoint)

    return Identity(did=did, handle=handle, services=services)
