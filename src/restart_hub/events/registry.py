"""Connection registry with per-connection state tracking."""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

import structlog

from restart_hub.events.types import ConnectionState

logger = structlog.get_logger()

T = TypeVar("T")

TransitionListener = Callable[["Connection", ConnectionState], None]

_STATE_ORDER = list(ConnectionState)


class Transport(Protocol):
    """Duplex channel to a single peer."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class Connection:
    """One peer's duplex channel and its lifecycle state.

    State only moves forward through connecting, open, closing and
    closed. Transitions to the current or an earlier state are ignored.

    Attributes:
        id: Short identifier used in logs and send failure reports.
        peer: Remote address of the peer.
    """

    def __init__(
        self,
        transport: Transport,
        peer: str = "unknown",
        connection_id: str | None = None,
    ) -> None:
        """Initialize a connection in the connecting state.

        Args:
            transport: Channel used to send to and close the peer.
            peer: Remote address for diagnostics.
            connection_id: Explicit identifier, generated if None.
        """
        self.id = connection_id or uuid.uuid4().hex[:8]
        self.peer = peer
        self._transport = transport
        self._state = ConnectionState.CONNECTING
        self._listeners: list[TransitionListener] = []

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, peer={self.peer!r}, state={self._state.value})"

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    def on_transition(self, listener: TransitionListener) -> None:
        """Register a listener called after every state change."""
        self._listeners.append(listener)

    def transition(self, state: ConnectionState) -> None:
        """Move to a new state and notify listeners.

        Args:
            state: Target state.
        """
        if _STATE_ORDER.index(state) <= _STATE_ORDER.index(self._state):
            return
        self._state = state
        for listener in list(self._listeners):
            listener(self, state)

    async def send(self, payload: bytes) -> None:
        """Send one encoded message to the peer."""
        await self._transport.send_text(payload.decode("utf-8"))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the transport, ending in the closed state.

        Args:
            code: WebSocket close code.
            reason: Close reason sent to the peer.
        """
        if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self.transition(ConnectionState.CLOSING)
        try:
            await self._transport.close(code=code, reason=reason)
        finally:
            self.transition(ConnectionState.CLOSED)


class ConnectionRegistry:
    """Set of live peer connections.

    A connection is removed the moment it transitions to closed, whichever
    path (explicit close, transport close event, hub shutdown) gets there
    first. Removal is idempotent.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._on_change: Callable[[], None] | None = None

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: object) -> bool:
        return isinstance(conn, Connection) and self._connections.get(conn.id) is conn

    def size(self) -> int:
        """Number of registered connections in any state."""
        return len(self._connections)

    def on_change(self, callback: Callable[[], None] | None) -> None:
        """Set the callback invoked after every add or remove."""
        self._on_change = callback

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _on_transition(self, conn: Connection, state: ConnectionState) -> None:
        if state is ConnectionState.CLOSED:
            self.remove(conn)

    def add(self, conn: Connection) -> bool:
        """Register a newly accepted connection and mark it open.

        Args:
            conn: Accepted connection.

        Returns:
            True if registered, False if the connection was already
            closing or closed.
        """
        if conn.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            logger.warning("connection_add_skipped", connection_id=conn.id, state=conn.state.value)
            return False

        self._connections[conn.id] = conn
        conn.on_transition(self._on_transition)
        conn.transition(ConnectionState.OPEN)
        logger.info(
            "connection_registered",
            connection_id=conn.id,
            peer=conn.peer,
            total_clients=len(self._connections),
        )
        self._changed()
        return True

    def remove(self, conn: Connection) -> bool:
        """Unregister a connection. Safe to call repeatedly.

        Args:
            conn: Connection to remove.

        Returns:
            True if the connection was registered.
        """
        if self._connections.get(conn.id) is not conn:
            return False
        del self._connections[conn.id]
        logger.info(
            "connection_removed",
            connection_id=conn.id,
            peer=conn.peer,
            remaining_clients=len(self._connections),
        )
        self._changed()
        return True

    async def for_each_open(
        self,
        fn: Callable[[Connection], Awaitable[T]],
    ) -> list[T]:
        """Apply ``fn`` to every open connection of a snapshot.

        Connections observed in any other state are skipped.

        Args:
            fn: Async callable applied concurrently to each open connection.

        Returns:
            Results of ``fn`` for each open connection.
        """
        snapshot = list(self._connections.values())
        targets = []
        for conn in snapshot:
            if conn.state is ConnectionState.OPEN:
                targets.append(conn)
            else:
                logger.warning(
                    "connection_skipped",
                    connection_id=conn.id,
                    state=conn.state.value,
                )
        return list(await asyncio.gather(*(fn(conn) for conn in targets)))

    async def close_all(self, code: int = 1001, reason: str = "") -> int:
        """Close every registered connection and empty the registry.

        Args:
            code: WebSocket close code sent to every peer.
            reason: Close reason sent to every peer.

        Returns:
            Number of connections that were registered.
        """
        snapshot = list(self._connections.values())
        results = await asyncio.gather(
            *(conn.close(code=code, reason=reason) for conn in snapshot),
            return_exceptions=True,
        )
        for conn, result in zip(snapshot, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "connection_close_failed",
                    connection_id=conn.id,
                    error=str(result),
                )
            conn.transition(ConnectionState.CLOSED)

        if self._connections:
            self._connections.clear()
            self._changed()
        return len(snapshot)
