"""Broadcast hub owning the listening endpoint and peer connections."""

import asyncio
import time
from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING

import structlog

from restart_hub.errors import (
    BindError,
    DecodeError,
    DecodeFailure,
    PeerConnectionError,
    SendError,
)
from restart_hub.events import codec
from restart_hub.events.registry import Connection, ConnectionRegistry
from restart_hub.events.types import (
    DEFAULT_PEER_SOURCE,
    BroadcastResult,
    ConnectionState,
    HubState,
    HubStatus,
    RestartEvent,
    SendFailure,
    StartOutcome,
    StopOutcome,
)

if TYPE_CHECKING:
    from restart_hub.endpoint import Endpoint

logger = structlog.get_logger()

Clock = Callable[[], int]
StatusObserver = Callable[[HubStatus], None]

SHUTDOWN_CLOSE_CODE = 1001
TRY_AGAIN_LATER_CLOSE_CODE = 1013

NO_CLIENTS_HINTS: tuple[str, ...] = (
    "Check that Roblox Studio is running",
    "Click the 'Connect' button in the Roblox Studio toolbar",
    "Check the Roblox Studio Output panel for errors",
    "Verify the hub port is not blocked by a firewall",
)


def system_clock() -> int:
    """Current time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


class BroadcastHub:
    """Hub relaying restart events to every connected peer.

    Owns the listening endpoint, the connection registry and the
    stopped/running state machine. Lifecycle transitions are serialized
    by a lock; broadcasts isolate per-connection send failures and report
    how many open connections received the event.

    Attributes:
        default_source: Source tag used when a peer omits one.
    """

    def __init__(
        self,
        endpoint_factory: Callable[[], "Endpoint"],
        clock: Clock = system_clock,
        default_source: str = DEFAULT_PEER_SOURCE,
    ) -> None:
        """Initialize a stopped hub.

        Args:
            endpoint_factory: Creates a fresh listening endpoint per start.
            clock: Millisecond clock used to stamp broadcasts.
            default_source: Source tag for peer messages without one.
        """
        self._endpoint_factory = endpoint_factory
        self._clock = clock
        self.default_source = default_source

        self._endpoint: "Endpoint | None" = None
        self._registry = ConnectionRegistry()
        self._registry.on_change(self._publish_status)
        self._state = HubState.STOPPED
        self._accepting = False
        self._lock = asyncio.Lock()
        self._observers: list[StatusObserver] = []

    @property
    def state(self) -> HubState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Whether the hub is accepting peers."""
        return self._state is HubState.RUNNING

    @property
    def client_count(self) -> int:
        """Number of registered peer connections."""
        return self._registry.size()

    @property
    def address(self) -> str | None:
        """WebSocket URL of the listening endpoint while running."""
        return self._endpoint.address if self._endpoint is not None else None

    def status(self) -> HubStatus:
        """Snapshot of running state and client count."""
        return HubStatus(running=self.is_running, client_count=self.client_count)

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        """Register a status observer.

        The observer is called with a fresh ``HubStatus`` after every
        lifecycle transition and every change in the client count.

        Args:
            observer: Callable receiving status snapshots.

        Returns:
            Function that removes the observer.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish_status(self) -> None:
        status = self.status()
        for observer in list(self._observers):
            try:
                observer(status)
            except Exception:
                logger.exception("status_observer_failed")

    async def start(self, suppress_notice: bool = False) -> StartOutcome:
        """Bind the listening endpoint and begin accepting peers.

        Args:
            suppress_notice: Skip the user-facing "active" notice, used
                when the hub is started automatically.

        Returns:
            ``STARTED``, or ``ALREADY_RUNNING`` if the hub was running.

        Raises:
            BindError: If the endpoint could not be bound. The hub stays
                stopped and does not retry.
        """
        async with self._lock:
            if self._state is HubState.RUNNING:
                logger.warning("hub_already_running", address=self.address)
                return StartOutcome.ALREADY_RUNNING

            endpoint = self._endpoint_factory()
            logger.info("hub_starting", address=endpoint.address)
            self._accepting = True
            try:
                await endpoint.open(self)
            except BindError as e:
                self._accepting = False
                logger.error(
                    "hub_bind_failed",
                    host=e.host,
                    port=e.port,
                    address_in_use=e.address_in_use,
                    error=str(e),
                )
                raise
            except BaseException:
                self._accepting = False
                raise

            self._endpoint = endpoint
            self._state = HubState.RUNNING

        logger.info("hub_started", address=self.address)
        if not suppress_notice:
            logger.info("hub_active", notice="Restart hub is active", address=self.address)
        self._publish_status()
        return StartOutcome.STARTED

    async def stop(self) -> StopOutcome:
        """Close all peer connections and the listening endpoint.

        Returns:
            ``STOPPED``, or ``NOT_RUNNING`` if the hub was already stopped.
        """
        async with self._lock:
            if self._state is HubState.STOPPED:
                logger.warning("hub_not_running")
                return StopOutcome.NOT_RUNNING

            logger.info("hub_stopping", client_count=self.client_count)
            self._accepting = False
            endpoint, self._endpoint = self._endpoint, None

            closed = await self._registry.close_all(
                code=SHUTDOWN_CLOSE_CODE,
                reason="hub stopping",
            )
            if endpoint is not None:
                try:
                    await endpoint.close()
                except Exception as e:
                    logger.error("endpoint_close_failed", error=str(e))

            self._state = HubState.STOPPED

        logger.info("hub_stopped", closed_connections=closed)
        self._publish_status()
        return StopOutcome.STOPPED

    async def on_accept(self, conn: Connection) -> bool:
        """Register a newly accepted peer connection.

        Args:
            conn: Connection handed over by the endpoint.

        Returns:
            True if the connection was registered.
        """
        if not self._accepting:
            logger.warning("connection_rejected", connection_id=conn.id, peer=conn.peer)
            try:
                await conn.close(code=TRY_AGAIN_LATER_CLOSE_CODE, reason="hub not running")
            except Exception as e:
                logger.debug("connection_reject_close_failed", error=str(e))
            return False

        logger.info("peer_connected", connection_id=conn.id, peer=conn.peer)
        return self._registry.add(conn)

    async def on_message(
        self,
        conn: Connection,
        data: bytes | str,
    ) -> BroadcastResult | None:
        """Handle one inbound peer message.

        A recognized restart is re-broadcast to every peer, the sender
        included. Anything else is logged and dropped without affecting
        the connection.

        Args:
            conn: Connection the message arrived on.
            data: Raw message.

        Returns:
            Broadcast outcome, or None if the message was dropped.
        """
        logger.debug("peer_message_received", connection_id=conn.id, size=len(data))
        try:
            payload = codec.decode(data)
        except DecodeError as e:
            log = logger.warning if e.failure is DecodeFailure.UNKNOWN_KIND else logger.error
            log(
                "peer_message_dropped",
                connection_id=conn.id,
                reason=e.failure.value,
                detail=e.detail,
                raw=_preview(data),
            )
            return None

        source = payload.source or self.default_source
        logger.info("peer_restart_received", connection_id=conn.id, source=source)
        return await self.notify(source)

    def on_close(self, conn: Connection, code: int | None = None, reason: str = "") -> None:
        """Record that a peer connection closed."""
        logger.info(
            "peer_disconnected",
            connection_id=conn.id,
            code=code,
            reason=reason,
        )
        conn.transition(ConnectionState.CLOSED)
        self._registry.remove(conn)

    def on_error(self, conn: Connection, exc: BaseException) -> None:
        """Record a transport failure and drop the connection."""
        error = PeerConnectionError(conn.id, exc)
        logger.error("peer_connection_error", connection_id=conn.id, peer=conn.peer, error=str(error))
        conn.transition(ConnectionState.CLOSED)
        self._registry.remove(conn)

    async def notify(self, source: str) -> BroadcastResult:
        """Broadcast a restart event stamped now.

        Args:
            source: Tag identifying the trigger.

        Returns:
            Counts of connections reached and attempted.
        """
        return await self.broadcast(RestartEvent(source=source, timestamp=self._clock()))

    async def broadcast(self, event: RestartEvent) -> BroadcastResult:
        """Send an event to every open connection.

        Returns after every open connection was attempted. A failed send
        is recorded and does not stop delivery to the others.

        Args:
            event: Event to deliver.

        Returns:
            Counts of connections reached and attempted, with failures.
        """
        if self._state is not HubState.RUNNING:
            logger.info("broadcast_skipped", reason="hub_not_running", source=event.source)
            return BroadcastResult()

        if self.client_count == 0:
            logger.warning(
                "broadcast_skipped",
                reason="no_clients",
                source=event.source,
                expected_peer=self.address,
                hints=list(NO_CLIENTS_HINTS),
            )
            return BroadcastResult()

        payload = codec.encode(event)
        logger.info(
            "broadcast_started",
            source=event.source,
            timestamp=event.timestamp,
            client_count=self.client_count,
        )

        outcomes = await self._registry.for_each_open(partial(self._deliver, payload))
        failures = [outcome for outcome in outcomes if outcome is not None]
        result = BroadcastResult(
            sent=len(outcomes) - len(failures),
            open=len(outcomes),
            failures=failures,
        )
        logger.info(
            "broadcast_complete",
            source=event.source,
            sent=result.sent,
            open=result.open,
        )
        return result

    async def _deliver(self, payload: bytes, conn: Connection) -> SendFailure | None:
        try:
            await conn.send(payload)
        except Exception as e:
            error = SendError(conn.id, e)
            logger.error("broadcast_send_failed", connection_id=conn.id, peer=conn.peer, error=str(error))
            return SendFailure(connection_id=conn.id, error=str(e) or type(e).__name__)
        return None


def _preview(data: bytes | str, limit: int = 200) -> str:
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    return text if len(text) <= limit else text[:limit] + "..."
