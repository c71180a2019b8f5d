"""
Network backend components for ch_http_core.

This module provides the low-level networking abstractions:
network streams, backends that open them, and an in-memory
implementation for tests.
"""

from .backend import NetworkBackend
from .stream import NetworkStream
from .asyncio_backend import AsyncioNetworkBackend, AsyncioNetworkStream
from .mock import MockNetworkBackend, MockNetworkStream, RecordedRequest, build_response
from .utils import (
    configure_socket,
    create_ssl_context,
    enable_keep_alive,
    format_host_header,
)

__all__ = [
    "NetworkBackend",
    "NetworkStream",
    "AsyncioNetworkBackend",
    "AsyncioNetworkStream",
    "MockNetworkBackend",
    "MockNetworkStream",
    "RecordedRequest",
    "build_response",
    "configure_socket",
    "create_ssl_context",
    "enable_keep_alive",
    "format_host_header",
]
