"""Event, status and result types for the restart hub."""
from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_PEER_SOURCE = "peer"

MAX_SOURCE_LENGTH = 256


class EventKind(str, Enum):
    """Event kinds understood by the hub."""

    RESTART = "restart"


class RestartEvent(BaseModel):
    """Normalized event broadcast to every connected peer.

    Attributes:
        kind: Always ``restart`` in this protocol version.
        source: Tag identifying who triggered the restart.
        timestamp: Milliseconds since the Unix epoch, stamped by the hub.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: Literal["restart"] = Field(default="restart", description="Event kind")
    source: str = Field(description="Trigger tag")
    timestamp: int = Field(description="Broadcast time (ms since epoch)")


class InboundPayload(BaseModel):
    """Recognized message received from a peer.

    Peers may tag the message with either ``kind`` or ``type``. Any
    timestamp sent by the peer is ignored; the hub re-stamps on broadcast.

    Attributes:
        kind: Recognized event kind.
        source: Trigger tag from the peer, if it sent a usable one.
    """

    model_config = ConfigDict(extra="ignore")

    kind: EventKind = Field(validation_alias=AliasChoices("kind", "type"))
    source: str | None = None

    @field_validator("source", mode="before")
    @classmethod
    def _usable_source(cls, value: object) -> str | None:
        if not isinstance(value, str):
            return None
        value = value.strip()
        if not value or len(value) > MAX_SOURCE_LENGTH:
            return None
        return value


class ConnectionState(str, Enum):
    """Lifecycle of a single peer connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class HubState(str, Enum):
    """Lifecycle of the hub."""

    STOPPED = "stopped"
    RUNNING = "running"


class StartOutcome(str, Enum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"


class StopOutcome(str, Enum):
    STOPPED = "stopped"
    NOT_RUNNING = "not_running"


class HubStatus(BaseModel):
    """Snapshot pushed to status observers.

    Attributes:
        running: Whether the hub is accepting connections.
        client_count: Number of registered connections.
    """

    model_config = ConfigDict(frozen=True)

    running: bool
    client_count: int


class SendFailure(BaseModel):
    """A connection that did not receive a broadcast."""

    connection_id: str
    error: str


class BroadcastResult(BaseModel):
    """Outcome of a single ``notify`` call.

    Attributes:
        sent: Connections that accepted the event.
        open: Open connections the hub attempted to reach.
        failures: Per-connection send failures.
    """

    sent: int = 0
    open: int = 0
    failures: list[SendFailure] = Field(default_factory=list)
