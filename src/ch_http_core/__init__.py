"""
ch_http_core - asyncio client for the ClickHouse HTTP interface

Sends statements and inserts over pooled HTTP/1.1 sockets, with
optional gzip compression, cancellation and idle timeouts, and hands
results back as async byte streams.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .cancellation import CancellationToken
from .client import Client, CommandResult, InsertResult, create_client
from .config import ClientConfig, CompressionSettings, ConnectionParams
from .connection import Connection, PingResult, QueryResult
from .exceptions import (
    CancellationError,
    ClickHouseClientError,
    ConnectionError,
    HTTPStatusError,
    ProtocolError,
    ServerError,
    StreamError,
    TimeoutError,
    TransportError,
    ValidationError,
)
from .result import ResultSet, Row
from .streams import ResponseStream, read_stream_to_bytes, read_stream_to_text

__all__ = [
    "CancellationToken",
    "Client",
    "CommandResult",
    "InsertResult",
    "create_client",
    "ClientConfig",
    "CompressionSettings",
    "ConnectionParams",
    "Connection",
    "PingResult",
    "QueryResult",
    "CancellationError",
    "ClickHouseClientError",
    "ConnectionError",
    "HTTPStatusError",
    "ProtocolError",
    "ServerError",
    "StreamError",
    "TimeoutError",
    "TransportError",
    "ValidationError",
    "ResultSet",
    "Row",
    "ResponseStream",
    "read_stream_to_bytes",
    "read_stream_to_text",
]
