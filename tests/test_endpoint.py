"""End-to-end tests against a real listening socket."""

import asyncio
import json
import socket
from collections.abc import Callable
from functools import partial

import pytest
import websockets

from restart_hub.endpoint import WebSocketEndpoint
from restart_hub.errors import BindError
from restart_hub.events.hub import BroadcastHub


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll until the predicate holds or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached in time")
        await asyncio.sleep(0.01)


def make_hub() -> BroadcastHub:
    return BroadcastHub(endpoint_factory=partial(WebSocketEndpoint, "127.0.0.1", 0))


@pytest.mark.asyncio
async def test_two_peers_scenario() -> None:
    """Peer A's restart is rebroadcast to both connected peers."""
    hub = make_hub()
    await hub.start()
    try:
        async with websockets.connect(hub.address) as peer_a, websockets.connect(hub.address) as peer_b:
            await wait_until(lambda: hub.client_count == 2)

            await peer_a.send(json.dumps({"type": "restart", "source": "roblox"}))

            for peer in (peer_a, peer_b):
                event = json.loads(await asyncio.wait_for(peer.recv(), timeout=5.0))
                assert event["kind"] == "restart"
                assert event["source"] == "roblox"
                assert isinstance(event["timestamp"], int)

        await wait_until(lambda: hub.client_count == 0)
    finally:
        await hub.stop()


@pytest.mark.asyncio
async def test_stop_disconnects_peers() -> None:
    """Stopping the hub closes connected peers and frees the port."""
    hub = make_hub()
    await hub.start()
    address = hub.address

    async with websockets.connect(address) as peer:
        await wait_until(lambda: hub.client_count == 1)
        await hub.stop()

        with pytest.raises(websockets.ConnectionClosed):
            await asyncio.wait_for(peer.recv(), timeout=5.0)

    assert hub.is_running is False
    assert hub.client_count == 0


@pytest.mark.asyncio
async def test_port_in_use_raises_bind_error() -> None:
    """A port held by another listener surfaces as BindError."""
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    port = blocker.getsockname()[1]
    try:
        hub = BroadcastHub(endpoint_factory=partial(WebSocketEndpoint, "127.0.0.1", port))
        with pytest.raises(BindError) as exc_info:
            await hub.start()
        assert exc_info.value.address_in_use is True
        assert hub.is_running is False
    finally:
        blocker.close()
