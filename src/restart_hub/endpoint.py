"""WebSocket listening endpoint served by an embedded uvicorn server."""

import asyncio
import contextlib
import errno
import socket
from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol

import structlog
import uvicorn

from restart_hub.app import create_app
from restart_hub.errors import BindError

if TYPE_CHECKING:
    from restart_hub.events.hub import BroadcastHub

logger = structlog.get_logger()

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3010


class Endpoint(Protocol):
    """Listening endpoint owned by a ``BroadcastHub``."""

    @property
    def address(self) -> str: ...

    async def open(self, hub: "BroadcastHub") -> None: ...

    async def close(self) -> None: ...


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host process."""

    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class WebSocketEndpoint:
    """Binds a TCP port and serves peer WebSockets plus the HTTP routes.

    The socket is bound before uvicorn starts so an unavailable port is
    reported as ``BindError`` instead of terminating the process.

    Attributes:
        host: Interface to bind.
        port: Bound port (the actual one once open, when 0 was requested).
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        shutdown_timeout: float = 5.0,
        startup_timeout: float = 10.0,
    ) -> None:
        """Initialize endpoint.

        Args:
            host: Interface to bind.
            port: Port to bind; 0 picks an ephemeral port.
            shutdown_timeout: Seconds uvicorn waits for connections on close.
            startup_timeout: Seconds to wait for uvicorn to start serving.
        """
        self.host = host
        self.port = port
        self._shutdown_timeout = shutdown_timeout
        self._startup_timeout = startup_timeout
        self._socket: socket.socket | None = None
        self._server: _EmbeddedServer | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def address(self) -> str:
        """WebSocket URL peers connect to."""
        return f"ws://{self.host}:{self.port}"

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            in_use = e.errno == errno.EADDRINUSE
            if in_use:
                logger.error(
                    "port_in_use",
                    port=self.port,
                    hint="Close the other application using the port or choose another port",
                )
            raise BindError(self.host, self.port, e.strerror or str(e), address_in_use=in_use) from e
        self.port = sock.getsockname()[1]
        return sock

    async def open(self, hub: "BroadcastHub") -> None:
        """Bind the port and start serving.

        Args:
            hub: Hub receiving connection events; exposed to the routes.

        Raises:
            BindError: If the port cannot be bound or the server fails
                to start.
        """
        sock = self._bind()
        config = uvicorn.Config(
            create_app(hub),
            host=self.host,
            port=self.port,
            lifespan="off",
            log_config=None,
            log_level="warning",
            access_log=False,
            timeout_graceful_shutdown=int(self._shutdown_timeout),
        )
        server = _EmbeddedServer(config)
        task = asyncio.create_task(server.serve(sockets=[sock]), name="restart-hub-endpoint")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._startup_timeout
        while not server.started:
            if task.done() or loop.time() > deadline:
                server.should_exit = True
                with contextlib.suppress(Exception, asyncio.CancelledError):
                    await asyncio.wait_for(task, timeout=self._shutdown_timeout)
                sock.close()
                raise BindError(self.host, self.port, "server failed to start")
            await asyncio.sleep(0.01)

        self._socket = sock
        self._server = server
        self._task = task
        logger.info("endpoint_listening", address=self.address)

    async def close(self) -> None:
        """Stop listening and wait for the server task to finish."""
        server, task, sock = self._server, self._task, self._socket
        self._server = self._task = self._socket = None
        if server is None or task is None:
            return

        server.should_exit = True
        try:
            await task
        finally:
            if sock is not None:
                sock.close()
        logger.info("endpoint_closed", address=self.address)
