"""Entry point for the restart hub."""

import asyncio
import contextlib
import signal
import sys
from functools import partial

import structlog

from restart_hub.config import Settings
from restart_hub.endpoint import WebSocketEndpoint
from restart_hub.errors import BindError
from restart_hub.events import BroadcastHub, HubStatus, SaveWatcher
from restart_hub.lifecycle import GracefulShutdown
from restart_hub.logging import configure_logging

logger = structlog.get_logger()


def build_hub(settings: Settings) -> BroadcastHub:
    """Construct the process's single hub from settings.

    Args:
        settings: Hub configuration.

    Returns:
        Stopped hub bound to the configured address on start.
    """
    return BroadcastHub(
        endpoint_factory=partial(
            WebSocketEndpoint,
            settings.host,
            settings.port,
            shutdown_timeout=settings.shutdown_timeout,
        ),
        default_source=settings.default_peer_source,
    )


def log_status(status: HubStatus) -> None:
    """Status observer standing in for an editor status bar."""
    logger.info("hub_status", running=status.running, client_count=status.client_count)


async def serve(settings: Settings, shutdown: GracefulShutdown | None = None) -> int:
    """Run the hub and the save watcher until SIGTERM/SIGINT.

    Args:
        settings: Hub configuration.
        shutdown: Coordinator to wait on; a new one is created if None.

    Returns:
        Process exit code.
    """
    shutdown = shutdown or GracefulShutdown()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, shutdown.trigger)

    try:
        return await _run_hub(settings, shutdown, loop)
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


async def _run_hub(
    settings: Settings,
    shutdown: GracefulShutdown,
    loop: asyncio.AbstractEventLoop,
) -> int:
    hub = build_hub(settings)
    hub.subscribe(log_status)

    try:
        await hub.start(suppress_notice=True)
    except BindError as e:
        logger.error("hub_unavailable", error=str(e), address_in_use=e.address_in_use)
        return 1

    watcher: SaveWatcher | None = None
    if settings.disable_auto_reload:
        logger.info("auto_reload_disabled")
    else:

        async def on_save(path: str) -> None:
            await hub.notify(settings.save_source)

        watcher = SaveWatcher(
            paths=settings.watch_paths,
            loop=loop,
            on_save=on_save,
            extensions=settings.watch_extensions,
            debounce_ms=settings.save_debounce_ms,
        )

    if watcher is not None:
        try:
            watcher.start()
        except ValueError as e:
            logger.error("watcher_unavailable", error=str(e))
            watcher = None

    try:
        await shutdown.wait_for_trigger()
    finally:
        if watcher is not None:
            watcher.stop()
        await hub.stop()

    return 0


def main() -> None:
    """Entry point for python -m restart_hub."""
    settings = Settings()
    configure_logging(debug=settings.debug, json_output=settings.log_json)

    exit_code = 0
    with contextlib.suppress(KeyboardInterrupt):
        exit_code = asyncio.run(serve(settings))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
