"""
HTTP/1.1 connection implementation for ch_http_core.

This module implements the HTTP11Connection class that drives the
HTTP/1.1 protocol over one pooled NetworkStream using h11. It knows
nothing about settlement or cancellation; the exchange using it
decides what a failure means.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

import h11

from .exceptions import ConnectionError, ProtocolError
from .http_primitives import Request, Response
from .network.stream import NetworkStream
from .network.utils import enable_keep_alive

logger = logging.getLogger(__name__)

READ_SIZE = 65536  # 64KB chunks


class ConnectionState(Enum):
    """States of an HTTP/1.1 connection."""
    NEW = "new"           # Connection created, not yet used
    ACTIVE = "active"     # Connection handling a request
    IDLE = "idle"         # Connection available for reuse
    CLOSED = "closed"     # Connection closed, cannot be reused


class HTTP11Connection:
    """
    One keep-alive HTTP/1.1 socket.

    Runs request/response cycles one after the other over a NetworkStream
    and reports whether the socket can be reused after each. It also
    owns the socket's idle timer: armed while an exchange uses the
    connection, restarted on every read and write, disarmed when the
    connection goes back to the pool.
    """

    def __init__(self, stream: NetworkStream) -> None:
        """
        Wrap a connected stream.

        Args:
            stream: Socket the connection speaks HTTP/1.1 over
        """
        self._stream = stream
        self._h11_connection = h11.Connection(h11.CLIENT)
        self._state = ConnectionState.NEW
        self._idle_since: Optional[float] = None

        # Idle timer
        self._idle_timeout: Optional[float] = None
        self._on_idle_timeout: Optional[Callable[[], Any]] = None
        self._idle_timer: Optional[asyncio.TimerHandle] = None

        # Metrics
        self._request_count = 0
        self._bytes_sent = 0
        self._bytes_received = 0

        logger.debug("HTTP/1.1 connection created")

    def acquire(self) -> None:
        """
        Mark the connection as used by one exchange.

        Raises:
            ConnectionError: If the connection is closed or busy
        """
        if self._state == ConnectionState.CLOSED:
            raise ConnectionError("Connection is closed")

        if self._state == ConnectionState.ACTIVE:
            raise ConnectionError("Connection is busy")

        self._state = ConnectionState.ACTIVE
        self._idle_since = None
        enable_keep_alive(self._stream.get_extra_info("socket"))

    def arm_idle_timeout(self, timeout: float, on_timeout: Callable[[], Any]) -> None:
        """
        Arm the idle timer of the socket.

        Args:
            timeout: Seconds without socket activity before firing
            on_timeout: Called once when the timer fires
        """
        self._idle_timeout = timeout
        self._on_idle_timeout = on_timeout
        self._restart_idle_timer()

    def disarm_idle_timeout(self) -> None:
        """Cancel the idle timer and forget its callback."""
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None
        self._on_idle_timeout = None
        self._idle_timeout = None

    def _restart_idle_timer(self) -> None:
        if self._on_idle_timeout is None or self._idle_timeout is None:
            return
        if self._idle_timer is not None:
            self._idle_timer.cancel()
        loop = asyncio.get_running_loop()
        self._idle_timer = loop.call_later(self._idle_timeout, self._fire_idle_timeout)

    def _fire_idle_timeout(self) -> None:
        callback = self._on_idle_timeout
        self._idle_timer = None
        self.disarm_idle_timeout()
        if callback is not None:
            callback()

    async def send_request(self, request: Request) -> None:
        """
        Send an HTTP request, body included, using h11.

        Args:
            request: The request to send
        """
        self._request_count += 1

        try:
            event = h11.Request(
                method=request.method,
                target=request.target,
                headers=request.headers,
            )
        except h11.LocalProtocolError as e:
            raise ProtocolError(str(e), cause=e) from e

        await self._send_event(event)

        if request.stream is not None:
            async for chunk in request.stream:
                if chunk:
                    await self._send_event(h11.Data(data=chunk))

        await self._send_event(h11.EndOfMessage())

    async def _send_event(self, event: h11.Event) -> None:
        """Serialize an h11 event and write it to the socket."""
        try:
            data = self._h11_connection.send(event)
        except h11.LocalProtocolError as e:
            raise ProtocolError(str(e), cause=e) from e

        if data:
            await self._stream.write(data)
            self._bytes_sent += len(data)
            self._restart_idle_timer()

    async def _next_event(self) -> h11.Event:
        while True:
            try:
                event = self._h11_connection.next_event()
            except h11.RemoteProtocolError as e:
                raise ProtocolError(str(e), cause=e) from e

            if event is not h11.NEED_DATA:
                return event

            data = await self._stream.read(READ_SIZE)
            self._restart_idle_timer()
            if not data:
                raise ProtocolError("Connection closed unexpectedly")
            self._h11_connection.receive_data(data)
            self._bytes_received += len(data)

    async def receive_response(self) -> Response:
        """
        Receive the head of the HTTP response.

        Informational (1xx) responses are skipped.

        Returns:
            Response carrying status and headers
        """
        while True:
            event = await self._next_event()

            if isinstance(event, h11.Response):
                return Response(
                    status_code=event.status_code,
                    headers=list(event.headers),
                    reason=event.reason,
                )

            if isinstance(event, h11.InformationalResponse):
                continue

            if isinstance(event, h11.ConnectionClosed):
                raise ProtocolError("Connection closed by server")

            raise ProtocolError(f"Unexpected event while waiting for response: {event!r}")

    async def receive_body_chunk(self) -> Optional[bytes]:
        """
        Read the next piece of the response body.

        Returns:
            Body bytes, or None once the body is complete
        """
        while True:
            event = await self._next_event()

            if isinstance(event, h11.Data):
                if event.data:
                    return bytes(event.data)
                continue

            if isinstance(event, h11.EndOfMessage):
                return None

            if isinstance(event, h11.ConnectionClosed):
                raise ProtocolError("Connection closed by server")

            raise ProtocolError(f"Unexpected event while reading body: {event!r}")

    def release(self) -> None:
        """
        Hand the socket back after a cycle.

        The connection becomes idle when both sides finished the
        request/response cycle cleanly, otherwise it is closed.
        """
        self.disarm_idle_timeout()

        if self._state != ConnectionState.ACTIVE:
            return

        if self._can_reuse_connection():
            self._h11_connection.start_next_cycle()
            self._state = ConnectionState.IDLE
            self._idle_since = asyncio.get_running_loop().time()
        else:
            self.abort()

    def _can_reuse_connection(self) -> bool:
        """Both sides finished the cycle and the socket is still open."""
        if self._stream.is_closed:
            return False

        return (
            self._h11_connection.our_state is h11.DONE
            and self._h11_connection.their_state is h11.DONE
        )

    def abort(self) -> None:
        """Close the socket immediately, from synchronous code."""
        self.disarm_idle_timeout()
        if self._state != ConnectionState.CLOSED:
            self._state = ConnectionState.CLOSED
            self._stream.abort()
            logger.debug(f"Connection aborted after {self._request_count} requests")

    async def close(self) -> None:
        """Close the socket gracefully."""
        self.disarm_idle_timeout()
        if self._state != ConnectionState.CLOSED:
            self._state = ConnectionState.CLOSED
            await self._stream.aclose()

        logger.debug(f"Connection closed after {self._request_count} requests")

    @property
    def is_closed(self) -> bool:
        """Whether the socket can no longer be used."""
        return self._state == ConnectionState.CLOSED or self._stream.is_closed

    @property
    def is_idle(self) -> bool:
        """Whether the socket waits in the pool for its next cycle."""
        return self._state == ConnectionState.IDLE and not self._stream.is_closed

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def idle_timer_armed(self) -> bool:
        """Check if an idle timeout callback is registered."""
        return self._on_idle_timeout is not None

    @property
    def stream(self) -> NetworkStream:
        """The underlying network stream."""
        return self._stream

    def has_expired(self, timeout: float) -> bool:
        """
        Check if the socket sat idle for longer than timeout seconds.

        Only idle sockets expire; active ones are covered by the
        idle timer instead.
        """
        if self._state != ConnectionState.IDLE or self._idle_since is None:
            return False

        return (asyncio.get_running_loop().time() - self._idle_since) > timeout

    @property
    def metrics(self) -> Dict[str, Any]:
        """Counters for this socket."""
        return {
            "request_count": self._request_count,
            "bytes_sent": self._bytes_sent,
            "bytes_received": self._bytes_received,
            "state": self._state.value,
            "idle_since": self._idle_since,
        }
