"""
Network backend interface for ch_http_core.

A backend is the one place sockets come from. The asyncio backend
opens real ones; the mock backend answers from memory.
"""

import ssl
from abc import ABC, abstractmethod
from typing import Optional

from .stream import NetworkStream


class NetworkBackend(ABC):
    """
    Opens sockets for the connection pool.

    The connection pool opens every socket through a backend, which
    lets tests replace the network with an in-memory server.
    """

    @abstractmethod
    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None
    ) -> NetworkStream:
        """
        Open a plain TCP socket.

        Args:
            host: Server name or address.
            port: Server port.
            timeout: Seconds allowed for the connect, None for no limit.

        Returns:
            The connected stream.

        Raises:
            OSError: If the connection fails.
            asyncio.TimeoutError: If the connection times out.
        """
        pass

    @abstractmethod
    async def connect_tls(
        self,
        host: str,
        port: int,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Connect to a TLS endpoint.

        Args:
            host: The hostname, also used for certificate verification.
            port: The port number to connect to.
            ssl_context: Context used for the handshake.
            timeout: Optional timeout in seconds for connect and handshake.

        Returns:
            The connected stream, handshake completed.

        Raises:
            OSError: If the connection or handshake fails.
            asyncio.TimeoutError: If the connection times out.
        """
        pass
