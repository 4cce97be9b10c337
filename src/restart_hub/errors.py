"""Error taxonomy for the restart hub."""
from enum import Enum


class HubError(Exception):
    """Base class for all hub errors."""


class BindError(HubError):
    """Listening endpoint could not be bound.

    The only error surfaced to callers of ``BroadcastHub.start``.

    Attributes:
        host: Address the hub tried to bind.
        port: Port the hub tried to bind.
        address_in_use: True when another process already owns the port.
    """

    def __init__(
        self,
        host: str,
        port: int,
        reason: str,
        address_in_use: bool = False,
    ) -> None:
        self.host = host
        self.port = port
        self.address_in_use = address_in_use
        super().__init__(f"Cannot bind ws://{host}:{port}: {reason}")


class DecodeFailure(str, Enum):
    """Reason an inbound payload was rejected."""

    MALFORMED = "malformed"
    UNKNOWN_KIND = "unknown_kind"


class DecodeError(HubError):
    """Inbound payload could not be turned into a recognized event.

    Recovered locally: logged and the message dropped.
    """

    def __init__(self, failure: DecodeFailure, detail: str) -> None:
        self.failure = failure
        self.detail = detail
        super().__init__(f"{failure.value}: {detail}")


class SendError(HubError):
    """A single connection could not accept a payload."""

    def __init__(self, connection_id: str, cause: BaseException) -> None:
        self.connection_id = connection_id
        self.cause = cause
        super().__init__(f"Send to {connection_id} failed: {cause!r}")


class PeerConnectionError(HubError):
    """Transport-level failure on a peer connection."""

    def __init__(self, connection_id: str, cause: BaseException) -> None:
        self.connection_id = connection_id
        self.cause = cause
        super().__init__(f"Connection {connection_id} failed: {cause!r}")
