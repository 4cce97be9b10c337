"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from restart_hub.errors import BindError
from restart_hub.events.hub import BroadcastHub
from restart_hub.events.registry import Connection

FIXED_NOW_MS = 1_700_000_000_000


class FakeTransport:
    """Records traffic instead of talking to a socket."""

    def __init__(self, fail_send: bool = False, fail_close: bool = False) -> None:
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_send = fail_send
        self.fail_close = fail_close

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)
        if self.fail_close:
            raise RuntimeError("close failed")


class FakeEndpoint:
    """Endpoint double that never touches the network."""

    def __init__(self, bind_error: BindError | None = None) -> None:
        self.bind_error = bind_error
        self.opened = 0
        self.closed = 0
        self.hub: BroadcastHub | None = None

    @property
    def address(self) -> str:
        return "ws://127.0.0.1:3010"

    async def open(self, hub: BroadcastHub) -> None:
        if self.bind_error is not None:
            raise self.bind_error
        self.opened += 1
        self.hub = hub

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def endpoint() -> FakeEndpoint:
    """Create a fake listening endpoint."""
    return FakeEndpoint()


@pytest.fixture
def hub(endpoint: FakeEndpoint) -> BroadcastHub:
    """Create a stopped hub with a fixed clock."""
    return BroadcastHub(endpoint_factory=lambda: endpoint, clock=lambda: FIXED_NOW_MS)


def make_connection(
    connection_id: str,
    fail_send: bool = False,
    fail_close: bool = False,
) -> tuple[Connection, FakeTransport]:
    """Create a connection over a fake transport."""
    transport = FakeTransport(fail_send=fail_send, fail_close=fail_close)
    return Connection(transport, peer=f"10.0.0.1:{connection_id}", connection_id=connection_id), transport
