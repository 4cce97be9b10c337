"""FastAPI application factory for the hub's listening endpoint."""

from typing import TYPE_CHECKING

from fastapi import FastAPI

from restart_hub import __version__
from restart_hub.routes import control, health, peers

if TYPE_CHECKING:
    from restart_hub.events.hub import BroadcastHub


def create_app(hub: "BroadcastHub") -> FastAPI:
    """Factory function to create the application served by the endpoint.

    HTTP routes are registered before the catch-all peer WebSocket route.

    Args:
        hub: Hub handling peer connections and restart triggers.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Restart Hub",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.hub = hub

    app.include_router(health.router)
    app.include_router(control.router)
    app.include_router(peers.router)

    return app
