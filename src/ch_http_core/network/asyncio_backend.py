"""
asyncio network backend for ch_http_core.

Sockets are opened with asyncio.open_connection and configured the
way the transport wants them: TCP_NODELAY and TCP keep-alive on.
"""

import asyncio
import logging
import ssl
from typing import Any, Optional

from .backend import NetworkBackend
from .stream import NetworkStream
from .utils import configure_socket

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 65536


class AsyncioNetworkStream(NetworkStream):
    """Network stream over an asyncio StreamReader/StreamWriter pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")
        return await self._reader.read(max_bytes or DEFAULT_READ_SIZE)

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        self._writer.write(data)
        await self._writer.drain()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            logger.debug(f"Error while closing socket: {e}")

    def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.transport.abort()

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._writer.get_extra_info(name)

    @property
    def is_closed(self) -> bool:
        return self._closed or self._writer.is_closing()


class AsyncioNetworkBackend(NetworkBackend):
    """Network backend using the running asyncio event loop."""

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None
    ) -> AsyncioNetworkStream:
        return await self._open(host, port, timeout, None)

    async def connect_tls(
        self,
        host: str,
        port: int,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> AsyncioNetworkStream:
        return await self._open(host, port, timeout, ssl_context)

    async def _open(
        self,
        host: str,
        port: int,
        timeout: Optional[float],
        ssl_context: Optional[ssl.SSLContext],
    ) -> AsyncioNetworkStream:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(
                host,
                port,
                ssl=ssl_context,
                server_hostname=host if ssl_context is not None else None,
            ),
            timeout=timeout,
        )

        sock = writer.get_extra_info("socket")
        if sock is not None:
            configure_socket(sock)

        logger.debug(f"Opened {'TLS' if ssl_context else 'TCP'} connection to {host}:{port}")
        return AsyncioNetworkStream(reader, writer)
