"""Shutdown signal coordinator for the hub process."""
import asyncio

import structlog

logger = structlog.get_logger()


class GracefulShutdown:
    """Signals the process owner that the hub should wind down.

    Signal handlers call ``trigger``; the entry point awaits
    ``wait_for_trigger`` and then stops the watcher and the hub.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
    """

    def __init__(self) -> None:
        self._triggered = False
        self._event = asyncio.Event()

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered.

        Returns:
            True if shutdown signal received.
        """
        return self._triggered

    def trigger(self) -> None:
        """Signal all waiting tasks to begin shutdown.

        Idempotent - calling multiple times has no additional effect.
        """
        if self._triggered:
            return
        logger.info("shutdown_triggered")
        self._triggered = True
        self._event.set()

    async def wait_for_trigger(self) -> None:
        """Wait until ``trigger`` is called."""
        await self._event.wait()
