"""Exception types raised by the bridge."""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class XRPCError(BridgeError):
    """A remote XRPC call failed.

    ``status_code`` is 0 when the request never got a response.
    """

    def __init__(self, method: str, status_code: int = 0, error: str = "", message: str = ""):
        self.method = method
        self.status_code = status_code
        self.error = error
        self.message = message
        detail = error or "request failed"
        if message:
            detail = f"{detail}: {message}"
        if status_code:
            super().__init__(f"{method} returned HTTP {status_code} ({detail})")
        else:
            super().__init__(f"{method} failed ({detail})")


class LoginMismatchError(BridgeError):
    """The remote session belongs to a different account than the stored one."""


class StoreError(BridgeError):
    """Persisting login state failed."""


class LoginError(BridgeError):
    """A login flow could not be completed."""


class BackfillNotSupportedError(BridgeError):
    """The requested backfill direction is not supported."""


class UnsupportedMessageTypeError(BridgeError):
    """An outbound message type can't be sent to Bluesky."""


class MessageTooLongError(BridgeError):
    """An outbound message is longer than Bluesky allows."""


class MessageParseError(BridgeError):
    """A remote message could not be parsed."""


class IdentityError(BridgeError):
    """A DID document is malformed."""


class InvalidDIDError(BridgeError, ValueError):
    """A string is not a syntactically valid DID."""
