"""
Tests for network backend components.
"""

import asyncio
import socket
import ssl
from unittest.mock import MagicMock

import pytest

from ch_http_core.network import (
    AsyncioNetworkBackend,
    MockNetworkBackend,
    MockNetworkStream,
    build_response,
    create_ssl_context,
    enable_keep_alive,
    format_host_header,
)

REQUEST = (
    b"POST /?query_id=1 HTTP/1.1\r\n"
    b"Host: localhost:8123\r\n"
    b"Content-Length: 8\r\n"
    b"\r\n"
    b"SELECT 1"
)


class TestMockNetworkStream:
    """Test MockNetworkStream functionality."""

    @pytest.mark.asyncio
    async def test_read_preloaded_data(self):
        """Test reading canned data, then end of stream."""
        stream = MockNetworkStream(b"Hello, World!")
        assert await stream.read(5) == b"Hello"
        assert await stream.read() == b", World!"
        assert await stream.read() == b""

    @pytest.mark.asyncio
    async def test_write(self):
        """Test written data is recorded."""
        stream = MockNetworkStream()
        await stream.write(b"Hello")
        await stream.write(b", World!")
        assert stream.written_data == b"Hello, World!"

    @pytest.mark.asyncio
    async def test_closed_stream(self):
        """Test reads and writes fail after close."""
        stream = MockNetworkStream(b"data")
        await stream.aclose()
        assert stream.is_closed
        with pytest.raises(RuntimeError):
            await stream.read()
        with pytest.raises(RuntimeError):
            await stream.write(b"data")

    @pytest.mark.asyncio
    async def test_handler_serves_requests(self):
        """Test requests are parsed and answered."""
        stream = MockNetworkStream(handler=lambda request: build_response(200, b"1\n"))
        await stream.write(REQUEST)

        assert len(stream.requests) == 1
        request = stream.requests[0]
        assert request.method == "POST"
        assert request.path == "/"
        assert request.target == "/?query_id=1"
        assert request.body == b"SELECT 1"
        assert request.get_header("host") == "localhost:8123"

        response = await stream.read()
        assert response.startswith(b"HTTP/1.1 200 ")
        assert response.endswith(b"\r\n\r\n1\n")

    @pytest.mark.asyncio
    async def test_request_split_across_writes(self):
        """Test a request written in pieces."""
        stream = MockNetworkStream(handler=lambda request: build_response(200))
        await stream.write(REQUEST[:20])
        assert stream.requests == []
        await stream.write(REQUEST[20:])
        assert stream.requests[0].body == b"SELECT 1"

    @pytest.mark.asyncio
    async def test_keep_alive_requests(self):
        """Test several requests on one stream."""
        stream = MockNetworkStream(handler=lambda request: build_response(200))
        await stream.write(REQUEST)
        await stream.write(REQUEST)
        assert len(stream.requests) == 2

    @pytest.mark.asyncio
    async def test_pending_read_woken_by_abort(self):
        """Test a read waiting for a reply fails when the stream is aborted."""
        stream = MockNetworkStream(handler=lambda request: None)
        await stream.write(REQUEST)

        read_task = asyncio.ensure_future(stream.read())
        await asyncio.sleep(0)
        assert not read_task.done()

        stream.abort()
        with pytest.raises(RuntimeError):
            await read_task

    @pytest.mark.asyncio
    async def test_end_of_stream(self):
        """Test simulating the peer closing the connection."""
        stream = MockNetworkStream(handler=lambda request: None)
        read_task = asyncio.ensure_future(stream.read())
        await asyncio.sleep(0)

        stream.end_of_stream()
        assert await read_task == b""

    def test_extra_info(self):
        """Test extra information."""
        stream = MockNetworkStream()
        assert stream.get_extra_info("peername") is None
        stream.set_extra_info("peername", ("127.0.0.1", 8123))
        assert stream.get_extra_info("peername") == ("127.0.0.1", 8123)


class TestBuildResponse:
    """Test response serialization."""

    def test_build_response(self):
        """Test status line, headers and Content-Length."""
        data = build_response(500, "boom", headers=[("X-ClickHouse-Exception-Code", "62")], reason="Internal Server Error")
        assert data == (
            b"HTTP/1.1 500 Internal Server Error\r\n"
            b"X-ClickHouse-Exception-Code: 62\r\n"
            b"Content-Length: 4\r\n"
            b"\r\n"
            b"boom"
        )


class TestMockNetworkBackend:
    """Test MockNetworkBackend functionality."""

    @pytest.mark.asyncio
    async def test_connect_tcp(self):
        """Test every connect opens a new stream."""
        backend = MockNetworkBackend()
        first = await backend.connect_tcp("localhost", 8123)
        second = await backend.connect_tcp("localhost", 8123)

        assert first is not second
        assert backend.connection_count == 2
        assert first.get_extra_info("peername") == ("localhost", 8123)
        assert first.get_extra_info("ssl_object") is None

    @pytest.mark.asyncio
    async def test_connect_tls(self):
        """Test TLS connections are marked."""
        backend = MockNetworkBackend()
        stream = await backend.connect_tls("localhost", 8443, ssl_context=None)
        assert stream.get_extra_info("ssl_object") is True

    @pytest.mark.asyncio
    async def test_connect_error(self):
        """Test scripted connect failures."""
        backend = MockNetworkBackend()
        backend.connect_error = OSError("Connection refused")
        with pytest.raises(OSError):
            await backend.connect_tcp("localhost", 8123)
        assert backend.connection_count == 0

    @pytest.mark.asyncio
    async def test_handler_can_change(self):
        """Test the handler is looked up per request."""
        backend = MockNetworkBackend(handler=lambda request: build_response(200, b"first"))
        stream = await backend.connect_tcp("localhost", 8123)

        backend.handler = lambda request: build_response(200, b"second")
        await stream.write(REQUEST)

        assert (await stream.read()).endswith(b"second")
        assert len(backend.requests) == 1


class TestAsyncioNetworkBackend:
    """Test the asyncio backend against a local server."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        """Test connecting, writing, reading and closing."""
        async def echo(reader, writer):
            data = await reader.read(100)
            writer.write(data.upper())
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(echo, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            stream = await AsyncioNetworkBackend().connect_tcp("127.0.0.1", port, timeout=5.0)
            assert stream.get_extra_info("peername")[1] == port

            await stream.write(b"ping")
            assert await stream.read() == b"PING"

            await stream.aclose()
            assert stream.is_closed
            with pytest.raises(RuntimeError):
                await stream.read()
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_abort(self):
        """Test aborting a stream."""
        async def hold(reader, writer):
            await reader.read(100)
            writer.close()

        server = await asyncio.start_server(hold, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            stream = await AsyncioNetworkBackend().connect_tcp("127.0.0.1", port)
            stream.abort()
            assert stream.is_closed
            stream.abort()
        finally:
            server.close()
            await server.wait_closed()


class TestNetworkUtils:
    """Test network utility functions."""

    @pytest.mark.parametrize(
        "host,port,scheme,expected",
        [
            ("localhost", 8123, "http", "localhost:8123"),
            ("localhost", 80, "http", "localhost"),
            ("db.example.com", 443, "https", "db.example.com"),
            ("db.example.com", 8443, "https", "db.example.com:8443"),
            ("::1", 8123, "http", "[::1]:8123"),
        ],
    )
    def test_format_host_header(self, host, port, scheme, expected):
        """Test Host header values."""
        assert format_host_header(host, port, scheme) == expected

    def test_create_ssl_context(self):
        """Test the default context verifies certificates."""
        context = create_ssl_context()
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname
        assert context.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_create_ssl_context_without_verification(self):
        """Test disabling verification."""
        context = create_ssl_context(verify=False)
        assert context.verify_mode == ssl.CERT_NONE
        assert not context.check_hostname

    def test_enable_keep_alive(self):
        """Test keep-alive options are set."""
        sock = MagicMock()
        enable_keep_alive(sock)
        sock.setsockopt.assert_any_call(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

    def test_enable_keep_alive_ignores_non_sockets(self):
        """Test objects without setsockopt are skipped."""
        enable_keep_alive(None)
        enable_keep_alive(3)
