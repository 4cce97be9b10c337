"""Events subsystem: wire codec, connection registry and broadcast hub."""
from restart_hub.events.hub import BroadcastHub
from restart_hub.events.registry import Connection, ConnectionRegistry
from restart_hub.events.types import (
    BroadcastResult,
    ConnectionState,
    EventKind,
    HubState,
    HubStatus,
    RestartEvent,
    StartOutcome,
    StopOutcome,
)
from restart_hub.events.watcher import SaveWatcher

__all__ = [
    "BroadcastHub",
    "BroadcastResult",
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "EventKind",
    "HubState",
    "HubStatus",
    "RestartEvent",
    "SaveWatcher",
    "StartOutcome",
    "StopOutcome",
]
