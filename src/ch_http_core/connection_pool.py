"""
Keep-alive socket pool for ch_http_core.

This module provides a pool of HTTP/1.1 connections to the
database server. Each pooled connection serves one exchange at a time;
when every socket is busy, callers wait for one to be released.
"""

import asyncio
import logging
import ssl
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .exceptions import ClickHouseClientError, ConnectionError
from .http11 import HTTP11Connection
from .network import NetworkBackend, NetworkStream
from .network.utils import create_ssl_context

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Sockets to the one server a client talks to.

    Any idle socket that has not outlived keep_alive_timeout may be
    handed out again; at most max_connections are open at once.
    Expired ones are dropped when the next caller asks for a socket.
    """

    def __init__(
        self,
        backend: NetworkBackend,
        host: str,
        port: int,
        scheme: str = "http",
        max_connections: int = 10,
        keep_alive_timeout: float = 2.5,
        connect_timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        """
        Args:
            backend: Opens the sockets
            host: Server host
            port: Server port
            scheme: "http" or "https"
            max_connections: Maximum sockets open at once
            keep_alive_timeout: Seconds an idle socket may be reused
            connect_timeout: Timeout for opening a socket
            ssl_context: Context for https; a default one is created if omitted
        """
        self._backend = backend
        self._host = host
        self._port = port
        self._scheme = scheme
        self._max_connections = max_connections
        self._keep_alive_timeout = keep_alive_timeout
        self._connect_timeout = connect_timeout
        self._ssl_context = ssl_context
        if scheme == "https" and ssl_context is None:
            self._ssl_context = create_ssl_context()

        self._connections: List[HTTP11Connection] = []
        self._connecting = 0
        self._waiters: Deque[asyncio.Future] = deque()

        # Metrics
        self._total_connections_created = 0
        self._total_connections_closed = 0

        self._closed = False

        logger.debug(f"Connection pool initialized: {scheme}://{host}:{port}, max={max_connections}")

    async def get_connection(self) -> HTTP11Connection:
        """
        Get an acquired connection to the server.

        Reuses an idle connection if one is available, opens a new one
        if the limit allows, and otherwise waits for a release.

        Returns:
            An HTTP/1.1 connection marked active

        Raises:
            ConnectionError: If the pool is closed or the connect fails
        """
        while True:
            if self._closed:
                raise ConnectionError("Connection pool is closed")

            self._discard_unusable()

            for connection in self._connections:
                if connection.is_idle:
                    connection.acquire()
                    logger.debug(f"Reusing connection to {self._host}:{self._port}")
                    return connection

            if len(self._connections) + self._connecting < self._max_connections:
                break

            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                # Pass a wake-up we received on to the next waiter
                if waiter.done() and not waiter.cancelled():
                    self._wake_waiter()
                raise
            finally:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)

        return await self._open_connection()

    async def _open_connection(self) -> HTTP11Connection:
        self._connecting += 1
        connect = asyncio.ensure_future(self._connect())
        try:
            stream = await asyncio.shield(connect)
        except ClickHouseClientError:
            self._wake_waiter()
            raise
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to create connection to {self._host}:{self._port}: {e!r}")
            self._wake_waiter()
            raise ConnectionError(f"Failed to create connection: {e!r}", cause=e) from e
        except asyncio.CancelledError:
            # The socket may still open after the caller gave up on it
            connect.add_done_callback(_abort_unclaimed_stream)
            self._wake_waiter()
            raise
        finally:
            self._connecting -= 1

        connection = HTTP11Connection(stream)
        connection.acquire()
        self._connections.append(connection)
        self._total_connections_created += 1

        logger.debug(f"Created new connection to {self._host}:{self._port}")
        return connection

    async def _connect(self) -> NetworkStream:
        if self._scheme == "https":
            return await self._backend.connect_tls(
                self._host, self._port, self._ssl_context, timeout=self._connect_timeout
            )
        return await self._backend.connect_tcp(
            self._host, self._port, timeout=self._connect_timeout
        )

    def release(self, connection: HTTP11Connection) -> None:
        """
        Take a socket back from its exchange.

        The connection is kept when it finished its cycle cleanly,
        otherwise it is closed and removed.

        Args:
            connection: Socket handed out by get_connection()
        """
        connection.release()

        if connection.is_closed or self._closed:
            if not connection.is_closed:
                connection.abort()
            if connection in self._connections:
                self._connections.remove(connection)
                self._total_connections_closed += 1
            logger.debug(f"Removed closed connection to {self._host}:{self._port}")
        else:
            logger.debug(f"Returned connection to pool for {self._host}:{self._port}")

        self._wake_waiter()

    def _wake_waiter(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

    def _discard_unusable(self) -> None:
        """Drop closed connections and close expired idle ones."""
        for connection in list(self._connections):
            if connection.has_expired(self._keep_alive_timeout):
                connection.abort()
            if connection.is_closed:
                self._connections.remove(connection)
                self._total_connections_closed += 1

    async def stop(self) -> None:
        """Close every connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        for connection in self._connections:
            try:
                await connection.close()
                self._total_connections_closed += 1
            except OSError as e:
                logger.warning(f"Error closing connection: {e}")

        self._connections.clear()

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)

        logger.debug(f"Connection pool stopped. Closed {self._total_connections_closed} connections")

    @property
    def connections(self) -> List[HTTP11Connection]:
        """Connections currently held by the pool."""
        return list(self._connections)

    @property
    def is_closed(self) -> bool:
        """Whether stop() was called."""
        return self._closed

    @property
    def metrics(self) -> Dict[str, Any]:
        """Socket counts and pool limits."""
        return {
            "total_connections": len(self._connections),
            "idle_connections": sum(1 for c in self._connections if c.is_idle),
            "total_connections_created": self._total_connections_created,
            "total_connections_closed": self._total_connections_closed,
            "waiting": len(self._waiters),
            "max_connections": self._max_connections,
            "keep_alive_timeout": self._keep_alive_timeout,
        }


def _abort_unclaimed_stream(connect: "asyncio.Future[NetworkStream]") -> None:
    if connect.cancelled() or connect.exception() is not None:
        return
    connect.result().abort()
