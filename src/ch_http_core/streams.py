"""
Streaming framework for ch_http_core.

This module provides streaming abstractions for HTTP request and response
bodies. Response bodies are never buffered by the transport: consumption
drives reading from the network, so a caller that stops reading keeps the
socket busy until it closes the stream or the idle timeout fires.
"""

import zlib
from abc import ABC, abstractmethod
from typing import (
    AsyncIterable,
    AsyncIterator,
    List,
    Optional,
    Union,
    TYPE_CHECKING,
)

from .exceptions import ClickHouseClientError, StreamError
from .http_primitives import Headers

if TYPE_CHECKING:
    from .transport import Exchange


BodyData = Union[bytes, str, List[bytes], AsyncIterable[Union[bytes, str]]]

# wbits for gzip framing in zlib (16 + MAX_WBITS)
GZIP_WBITS = 31


class StreamInterface(ABC):
    """
    Async iterator of body chunks that can be closed early.
    """

    @abstractmethod
    def __aiter__(self) -> "StreamInterface":
        pass

    @abstractmethod
    async def __anext__(self) -> bytes:
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """Stop the stream; further reads raise StreamError."""
        pass

    async def aread(self) -> bytes:
        """Collect the remaining chunks."""
        chunks = []
        async for chunk in self:
            chunks.append(chunk)
        return b"".join(chunks)


class RequestStream(StreamInterface):
    """
    Outgoing body of a POST.

    Wraps literal data (bytes, text or a list of byte chunks) in a
    readable adapter, or passes an async iterable through. Failures of
    the source are reported as StreamError; library errors raised by
    the source (for instance a ValidationError from a values encoder)
    pass through unchanged.
    """

    def __init__(self, data: BodyData) -> None:
        """
        Args:
            data: Literal bytes or text, a list of byte chunks, or an async
                iterable of bytes or str chunks
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        self._data = data
        self._closed = False
        self._iterator: Optional[AsyncIterator[Union[bytes, str]]] = None

    def _get_iterator(self) -> AsyncIterator[Union[bytes, str]]:
        if isinstance(self._data, bytes):
            return _iter_list([self._data])
        elif isinstance(self._data, list):
            return _iter_list(self._data)
        else:
            return self._data.__aiter__()

    def __aiter__(self) -> "RequestStream":
        if self._closed:
            raise StreamError("Cannot iterate over closed stream")

        self._iterator = self._get_iterator()
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StreamError("Cannot read from closed stream")

        if self._iterator is None:
            raise RuntimeError("Stream not initialized for iteration")

        try:
            chunk = await self._iterator.__anext__()
        except StopAsyncIteration:
            raise
        except ClickHouseClientError:
            raise
        except Exception as e:
            raise StreamError(f"Error reading from request body: {e}", cause=e) from e

        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        elif not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise StreamError(f"Request body chunks must be bytes or str, got {type(chunk).__name__}")

        return bytes(chunk)

    async def aclose(self) -> None:
        self._closed = True
        self._iterator = None

    @property
    def content_length(self) -> Optional[int]:
        """Length of literal data, None for streamed sources."""
        if isinstance(self._data, bytes):
            return len(self._data)
        elif isinstance(self._data, list):
            return sum(len(chunk) for chunk in self._data)
        return None

    @property
    def closed(self) -> bool:
        """Whether aclose() was called."""
        return self._closed


async def _iter_list(data: List[bytes]) -> AsyncIterator[bytes]:
    for chunk in data:
        if chunk:
            yield chunk


async def gzip_stream(source: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """
    Gzip-compress an async byte stream.

    Args:
        source: Uncompressed chunks

    Yields:
        Compressed chunks, ending with the gzip trailer
    """
    compressor = zlib.compressobj(wbits=GZIP_WBITS)
    async for chunk in source:
        compressed = compressor.compress(chunk)
        if compressed:
            yield compressed
    yield compressor.flush()


class ResponseStream(StreamInterface):
    """
    Body of a response, read on demand.

    Chunks are pulled from the exchange that produced the response,
    and gunzipped on the fly when the server compressed the body.
    Iteration is the payload channel; aclose() is lifecycle control
    and releases the socket behind the stream.
    """

    def __init__(
        self,
        exchange: "Exchange",
        status_code: int,
        headers: Headers,
        decompress: bool = False,
    ) -> None:
        """
        Args:
            exchange: The exchange that owns the socket this stream reads from
            status_code: HTTP status of the response
            headers: Response headers
            decompress: Whether the body is gzip-encoded
        """
        self._exchange = exchange
        self._status_code = status_code
        self._headers = headers
        self._decompressor = zlib.decompressobj(wbits=GZIP_WBITS) if decompress else None
        self._closed = False
        self._finished = False
        self._bytes_read = 0

    def __aiter__(self) -> "ResponseStream":
        if self._closed:
            raise StreamError("Cannot iterate over closed stream")
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StreamError("Cannot read from closed stream")

        while not self._finished:
            chunk = await self._exchange.receive_body_chunk()

            if chunk is None:
                self._finished = True
                tail = self._flush()
                if tail:
                    return tail
                break

            self._bytes_read += len(chunk)
            data = self._decode(chunk)
            if data:
                return data

        raise StopAsyncIteration

    def _decode(self, chunk: bytes) -> bytes:
        if self._decompressor is None:
            return chunk
        try:
            return self._decompressor.decompress(chunk)
        except zlib.error as e:
            self._finished = True
            self._exchange.abandon()
            raise StreamError(f"Failed to decompress response body: {e}", cause=e) from e

    def _flush(self) -> bytes:
        if self._decompressor is None:
            return b""
        if not self._decompressor.eof:
            raise StreamError("Compressed response body ended unexpectedly")
        return self._decompressor.flush()

    async def aclose(self) -> None:
        """
        Stop reading.

        Closing before the body was fully read destroys the socket.
        """
        if not self._closed:
            self._closed = True
            if not self._finished:
                self._exchange.abandon()

    async def __aenter__(self) -> "ResponseStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def status_code(self) -> int:
        """HTTP status of the response."""
        return self._status_code

    @property
    def headers(self) -> Headers:
        """Response headers."""
        return self._headers

    def get_header(self, name: str) -> Optional[str]:
        """Get a header value by name (case-insensitive), decoded as latin-1."""
        name_lower = name.lower().encode()
        for header_name, header_value in self._headers:
            if header_name.lower() == name_lower:
                return header_value.decode("latin-1")
        return None

    @property
    def closed(self) -> bool:
        """Whether aclose() was called."""
        return self._closed

    @property
    def finished(self) -> bool:
        """Whether the body was read to the end."""
        return self._finished

    @property
    def bytes_read(self) -> int:
        """Body bytes received so far, before decompression."""
        return self._bytes_read


async def read_stream_to_bytes(stream: AsyncIterable[bytes]) -> bytes:
    """Drain a body stream into one bytes object."""
    chunks = []
    async for chunk in stream:
        chunks.append(chunk)
    return b"".join(chunks)


async def read_stream_to_text(stream: AsyncIterable[bytes], encoding: str = "utf-8") -> str:
    """Read entire stream and decode it as text."""
    return (await read_stream_to_bytes(stream)).decode(encoding, errors="replace")


async def close_stream(stream: ResponseStream) -> None:
    """
    Dispose of a response stream nobody is interested in.

    The remaining body is drained so the socket can go back to the
    pool, then the stream is closed.
    """
    try:
        if not stream.closed:
            async for _ in stream:
                pass
    finally:
        await stream.aclose()
