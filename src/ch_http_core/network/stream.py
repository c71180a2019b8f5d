"""
Network stream interface for ch_http_core.

A NetworkStream is one connected socket as the HTTP/1.1 driver sees
it: bytes in, bytes out, and two ways to close it.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class NetworkStream(ABC):
    """
    A connected byte stream.

    Implementations wrap an asyncio socket in production and an
    in-memory buffer in tests. Only one coroutine reads at a time.
    """

    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Wait for incoming bytes.

        Args:
            max_bytes: Upper bound on the returned chunk size.

        Returns:
            Received bytes, or b"" once the peer has closed its side.

        Raises:
            RuntimeError: If the stream was closed locally.
            OSError: On socket failures.
        """
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Send bytes, waiting until the transport accepted them.

        Args:
            data: Bytes to send.

        Raises:
            RuntimeError: If the stream was closed locally.
            OSError: On socket failures.
        """
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """Close the stream gracefully."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """
        Close the stream immediately, from synchronous code.

        Pending reads must wake up and either return b"" or raise.
        """
        pass

    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """
        Look up transport details.

        Args:
            name: "socket", "peername", "sockname" or "ssl_object".

        Returns:
            The value, or None when the stream does not know it.
        """
        pass

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """Whether the stream was closed, locally or by abort()."""
        pass
