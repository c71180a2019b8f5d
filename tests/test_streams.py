"""
Tests for the streaming framework.
"""

import gzip

import pytest

from ch_http_core.exceptions import StreamError, ValidationError
from ch_http_core.streams import (
    RequestStream,
    ResponseStream,
    close_stream,
    gzip_stream,
    read_stream_to_bytes,
    read_stream_to_text,
)


class FakeExchange:
    """Exchange stand-in serving body chunks from a list."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.abandoned = False

    async def receive_body_chunk(self):
        if self.chunks:
            return self.chunks.pop(0)
        return None

    def abandon(self):
        self.abandoned = True


class TestRequestStream:
    """Test RequestStream functionality."""

    @pytest.mark.asyncio
    async def test_bytes(self):
        """Test streaming bytes."""
        stream = RequestStream(b"SELECT 1")
        assert stream.content_length == 8
        assert await read_stream_to_bytes(stream) == b"SELECT 1"

    @pytest.mark.asyncio
    async def test_str(self):
        """Test strings are encoded as UTF-8."""
        stream = RequestStream("SELECT 'é'")
        assert stream.content_length == len("SELECT 'é'".encode("utf-8"))
        assert await stream.aread() == "SELECT 'é'".encode("utf-8")

    @pytest.mark.asyncio
    async def test_list(self):
        """Test lists of chunks, empty chunks skipped."""
        stream = RequestStream([b"a", b"", b"bc"])
        assert stream.content_length == 3
        chunks = [chunk async for chunk in stream]
        assert chunks == [b"a", b"bc"]

    @pytest.mark.asyncio
    async def test_async_iterable(self, async_data_generator):
        """Test async iterables, str chunks encoded."""
        stream = RequestStream(async_data_generator([b"1,a\n", "2,b\n"]))
        assert stream.content_length is None
        assert await read_stream_to_bytes(stream) == b"1,a\n2,b\n"

    @pytest.mark.asyncio
    async def test_invalid_chunk(self, async_data_generator):
        """Test non-bytes chunks are rejected."""
        stream = RequestStream(async_data_generator([1]))
        with pytest.raises(StreamError):
            await read_stream_to_bytes(stream)

    @pytest.mark.asyncio
    async def test_source_failure_wrapped(self):
        """Test failures of the source become StreamError."""
        async def failing():
            yield b"a"
            raise ValueError("source broke")

        with pytest.raises(StreamError) as exc_info:
            await read_stream_to_bytes(RequestStream(failing()))
        assert isinstance(exc_info.value.cause, ValueError)

    @pytest.mark.asyncio
    async def test_library_errors_pass_through(self):
        """Test library errors raised by the source are not wrapped."""
        async def invalid():
            raise ValidationError("bad row")
            yield b""

        with pytest.raises(ValidationError):
            await read_stream_to_bytes(RequestStream(invalid()))

    @pytest.mark.asyncio
    async def test_closed(self):
        """Test closed streams cannot be iterated."""
        stream = RequestStream(b"data")
        await stream.aclose()
        assert stream.closed
        with pytest.raises(StreamError):
            stream.__aiter__()


class TestGzipStream:
    """Test request compression."""

    @pytest.mark.asyncio
    async def test_compress(self, async_data_generator):
        """Test the output is a complete gzip member."""
        payload = [b"row %d\n" % i for i in range(1000)]
        compressed = await read_stream_to_bytes(gzip_stream(async_data_generator(payload)))
        assert gzip.decompress(compressed) == b"".join(payload)
        assert len(compressed) < len(b"".join(payload))


class TestResponseStream:
    """Test ResponseStream functionality."""

    @pytest.mark.asyncio
    async def test_read(self):
        """Test reading a plain body."""
        exchange = FakeExchange([b"Hello", b", ", b"World"])
        stream = ResponseStream(exchange, 200, [(b"Content-Type", b"text/plain")])
        assert await read_stream_to_bytes(stream) == b"Hello, World"
        assert stream.finished
        assert stream.bytes_read == 12
        assert stream.status_code == 200
        assert stream.get_header("content-type") == "text/plain"
        assert stream.get_header("x-missing") is None

    @pytest.mark.asyncio
    async def test_decompress(self):
        """Test gunzipping a body split across chunks."""
        compressed = gzip.compress(b'{"data":[]}\n' * 50)
        chunks = [compressed[i:i + 7] for i in range(0, len(compressed), 7)]
        stream = ResponseStream(FakeExchange(chunks), 200, [], decompress=True)
        assert await read_stream_to_text(stream) == '{"data":[]}\n' * 50

    @pytest.mark.asyncio
    async def test_truncated_gzip(self):
        """Test a gzip body cut short."""
        compressed = gzip.compress(b"x" * 100)
        stream = ResponseStream(FakeExchange([compressed[:-8]]), 200, [], decompress=True)
        with pytest.raises(StreamError):
            await read_stream_to_bytes(stream)

    @pytest.mark.asyncio
    async def test_corrupt_gzip(self):
        """Test a body that is not gzip data."""
        exchange = FakeExchange([b"definitely not gzip"])
        stream = ResponseStream(exchange, 200, [], decompress=True)
        with pytest.raises(StreamError):
            await read_stream_to_bytes(stream)
        assert exchange.abandoned

    @pytest.mark.asyncio
    async def test_aclose_unfinished(self):
        """Test closing an unread stream abandons the socket."""
        exchange = FakeExchange([b"data"])
        stream = ResponseStream(exchange, 200, [])
        await stream.aclose()
        assert stream.closed
        assert exchange.abandoned
        with pytest.raises(StreamError):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_aclose_finished(self):
        """Test closing a fully read stream keeps the socket."""
        exchange = FakeExchange([b"data"])
        async with ResponseStream(exchange, 200, []) as stream:
            await read_stream_to_bytes(stream)
        assert stream.closed
        assert not exchange.abandoned

    @pytest.mark.asyncio
    async def test_close_stream_drains(self):
        """Test close_stream reads the rest of the body."""
        exchange = FakeExchange([b"a", b"b", b"c"])
        stream = ResponseStream(exchange, 200, [])
        await close_stream(stream)
        assert exchange.chunks == []
        assert not exchange.abandoned
        assert stream.closed
