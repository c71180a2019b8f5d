"""
In-memory network used by the test suite.

This module provides fake implementations of NetworkStream and
NetworkBackend. A MockNetworkStream can either replay canned bytes or
act as a tiny HTTP server: requests written to it are parsed with h11
and handed to a handler, whose reply becomes readable data.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import h11

from .backend import NetworkBackend
from .stream import NetworkStream


@dataclass
class RecordedRequest:
    """A request received by a mock stream."""

    method: str
    target: str
    headers: List[Tuple[bytes, bytes]]
    body: bytes = b""

    def get_header(self, name: str) -> Optional[str]:
        name_lower = name.lower().encode()
        for header_name, value in self.headers:
            if header_name.lower() == name_lower:
                return value.decode("latin-1")
        return None

    @property
    def path(self) -> str:
        return self.target.split("?", 1)[0]


# A handler returns raw response bytes, or None to never answer
Handler = Callable[[RecordedRequest], Optional[bytes]]


def build_response(
    status_code: int = 200,
    body: Union[bytes, str] = b"",
    headers: Optional[Sequence[Tuple[str, str]]] = None,
    reason: str = "",
) -> bytes:
    """
    Serialize an HTTP/1.1 response with a Content-Length body.

    Args:
        status_code: Response status
        body: Response body
        headers: Extra headers
        reason: Reason phrase

    Returns:
        Raw response bytes
    """
    if isinstance(body, str):
        body = body.encode("utf-8")

    lines = [f"HTTP/1.1 {status_code} {reason or 'Status'}"]
    for name, value in headers or ():
        lines.append(f"{name}: {value}")
    lines.append(f"Content-Length: {len(body)}")
    head = "\r\n".join(lines) + "\r\n\r\n"
    return head.encode("latin-1") + body


class MockNetworkStream(NetworkStream):
    """
    A socket that lives in memory.

    Without a handler, reads return the preloaded data and then b"".
    With a handler, reads wait until a reply is available, the stream
    is closed, or end_of_stream() is called.
    """

    def __init__(self, data: bytes = b"", handler: Optional[Handler] = None):
        """
        Args:
            data: Bytes readable before any request is served.
            handler: Optional HTTP request handler.
        """
        self._data = data
        self._position = 0
        self._closed = False
        self._eof = handler is None
        self._handler = handler
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []
        self._data_available = asyncio.Event()
        self._server = h11.Connection(h11.SERVER)
        self._pending: Optional[RecordedRequest] = None
        self.requests: List[RecordedRequest] = []

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Return buffered reply bytes, waiting for them when needed.

        Raises:
            RuntimeError: If the stream is closed.
        """
        while True:
            if self._closed:
                raise RuntimeError("Stream is closed")

            if self._position < len(self._data):
                break

            if self._eof:
                return b""

            self._data_available.clear()
            await self._data_available.wait()

        if max_bytes is None:
            end = len(self._data)
        else:
            end = min(self._position + max_bytes, len(self._data))
        result = self._data[self._position:end]
        self._position = end
        return result

    async def write(self, data: bytes) -> None:
        """
        Feed bytes to the server side parser.

        Raises:
            RuntimeError: If the stream is closed.
        """
        if self._closed:
            raise RuntimeError("Stream is closed")

        self._write_buffer.append(data)
        if self._handler is not None:
            self._serve(data)

    def _serve(self, data: bytes) -> None:
        self._server.receive_data(data)
        while True:
            event = self._server.next_event()
            if event is h11.NEED_DATA or event is h11.PAUSED:
                return

            if isinstance(event, h11.Request):
                self._pending = RecordedRequest(
                    method=event.method.decode(),
                    target=event.target.decode(),
                    headers=list(event.headers),
                )
            elif isinstance(event, h11.Data) and self._pending is not None:
                self._pending.body += bytes(event.data)
            elif isinstance(event, h11.EndOfMessage) and self._pending is not None:
                request, self._pending = self._pending, None
                self.requests.append(request)
                self._server = h11.Connection(h11.SERVER)
                reply = self._handler(request)
                if reply is not None:
                    self.add_data(reply)
                return

    async def aclose(self) -> None:
        """Same as abort(); there is nothing to flush."""
        self.abort()

    def abort(self) -> None:
        """Close the mock stream and wake up pending reads."""
        self._closed = True
        self._data_available.set()

    def end_of_stream(self) -> None:
        """Simulate the peer closing the connection."""
        self._eof = True
        self._data_available.set()

    def get_extra_info(self, name: str) -> Optional[Any]:
        """Return a value stored with set_extra_info(), or None."""
        return self._extra_info.get(name)

    @property
    def is_closed(self) -> bool:
        """Whether abort() or aclose() was called."""
        return self._closed

    @property
    def written_data(self) -> bytes:
        """Everything the client sent, concatenated."""
        return b"".join(self._write_buffer)

    def set_extra_info(self, name: str, value: Any) -> None:
        """Make get_extra_info(name) return value."""
        self._extra_info[name] = value

    def add_data(self, data: bytes) -> None:
        """Append reply bytes and wake a waiting reader."""
        self._data += data
        self._data_available.set()


class MockNetworkBackend(NetworkBackend):
    """
    Backend whose every socket talks to the same in-memory server.

    Every connect returns a new MockNetworkStream bound to the
    backend's handler, so a backend behaves like a server that
    accepts any number of keep-alive connections.
    """

    def __init__(self, handler: Optional[Handler] = None):
        """
        Initialize the mock backend.

        Args:
            handler: HTTP request handler shared by all connections.
        """
        self.handler = handler
        self.streams: List[MockNetworkStream] = []
        self.connect_error: Optional[BaseException] = None

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None
    ) -> MockNetworkStream:
        """
        Open a new in-memory socket.

        Raises:
            The exception stored in connect_error, if any.
        """
        if self.connect_error is not None:
            raise self.connect_error

        stream = MockNetworkStream(handler=self._dispatch)
        stream.set_extra_info("socket", len(self.streams))
        stream.set_extra_info("peername", (host, port))
        stream.set_extra_info("sockname", ("127.0.0.1", 12345))
        self.streams.append(stream)
        return stream

    async def connect_tls(
        self,
        host: str,
        port: int,
        ssl_context: Any,
        timeout: Optional[float] = None,
    ) -> MockNetworkStream:
        """Open a socket that reports an ssl_object."""
        stream = await self.connect_tcp(host, port, timeout)
        stream.set_extra_info("ssl_object", True)
        return stream

    def _dispatch(self, request: RecordedRequest) -> Optional[bytes]:
        if self.handler is None:
            return None
        return self.handler(request)

    @property
    def connection_count(self) -> int:
        """Number of connections opened so far."""
        return len(self.streams)

    @property
    def requests(self) -> List[RecordedRequest]:
        """All requests received, across connections, in arrival order per connection."""
        return [request for stream in self.streams for request in stream.requests]
