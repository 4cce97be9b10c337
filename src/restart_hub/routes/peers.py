"""WebSocket endpoint accepting peer connections."""

from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, WebSocket

from restart_hub.events.registry import Connection

if TYPE_CHECKING:
    from restart_hub.events.hub import BroadcastHub

logger = structlog.get_logger()

router = APIRouter(tags=["peers"])


class WebSocketTransport:
    """Adapts a starlette WebSocket to the connection transport interface."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def send_text(self, data: str) -> None:
        await self._websocket.send_text(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._websocket.close(code=code, reason=reason)


@router.websocket("/{path:path}")
async def peer_socket(websocket: WebSocket, path: str = "") -> None:
    """Serve one peer for the lifetime of its WebSocket.

    Peers may connect on any path. Every text or binary frame is handed
    to the hub; the connection ends when the peer disconnects or the hub
    closes it.

    Args:
        websocket: Incoming WebSocket connection.
        path: Requested path, informational only.
    """
    hub: BroadcastHub = websocket.app.state.hub

    await websocket.accept()
    client = websocket.client
    peer = f"{client.host}:{client.port}" if client else "unknown"
    conn = Connection(WebSocketTransport(websocket), peer=peer)
    logger.debug("peer_socket_accepted", connection_id=conn.id, peer=peer, path=f"/{path}")

    if not await hub.on_accept(conn):
        return

    code: int | None = None
    reason = ""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                code = message.get("code")
                reason = message.get("reason") or ""
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""
            await hub.on_message(conn, data)
    except Exception as e:
        hub.on_error(conn, e)
    finally:
        hub.on_close(conn, code=code, reason=reason)
