"""Health check endpoint for liveness probes."""
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when the hub is serving.
    """

    status: Literal["alive"]


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns immediate success while the hub's endpoint is serving.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")
