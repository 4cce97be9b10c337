"""Hub status and manual restart trigger."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from pydantic import BaseModel

from restart_hub.events.types import BroadcastResult

if TYPE_CHECKING:
    from restart_hub.events.hub import BroadcastHub

router = APIRouter(tags=["control"])

MANUAL_RESTART_SOURCE = "http"


class StatusResponse(BaseModel):
    """Current hub status.

    Attributes:
        running: Whether the hub is accepting peers.
        client_count: Number of connected peers.
        address: WebSocket URL peers connect to.
    """

    running: bool
    client_count: int
    address: str | None = None


@router.get("/status", response_model=StatusResponse)
async def hub_status(request: Request) -> StatusResponse:
    """Report running state and connected peer count."""
    hub: BroadcastHub = request.app.state.hub
    status = hub.status()
    return StatusResponse(
        running=status.running,
        client_count=status.client_count,
        address=hub.address,
    )


@router.post("/control/restart", response_model=BroadcastResult)
async def trigger_restart(request: Request) -> BroadcastResult:
    """Broadcast a restart event to every connected peer.

    Args:
        request: FastAPI request object.

    Returns:
        How many open peers received the event.
    """
    hub: BroadcastHub = request.app.state.hub
    return await hub.notify(MANUAL_RESTART_SOURCE)
