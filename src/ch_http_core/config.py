"""
Client configuration for ch_http_core.

ClientConfig is what callers build (all fields have defaults).
It is resolved once into an immutable ConnectionParams that the
transport owns for the rest of its life.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .http_primitives import URLComponents

logger = logging.getLogger(__name__)

Settings = Dict[str, Any]


@dataclass(frozen=True)
class CompressionSettings:
    """Compression policy of a connection."""

    # Gzip request bodies of inserts
    compress_request: bool = False

    # Ask the server to gzip query results
    decompress_response: bool = True


@dataclass
class ClientConfig:
    """Configuration options for the client."""

    # Server base URL; the path, if any, is used as a prefix
    url: str = "http://localhost:8123"

    # Credentials sent with HTTP basic auth
    username: str = "default"
    password: str = ""

    # Database used for every statement
    database: str = "default"

    # Socket idle timeout in seconds for a single request
    request_timeout: float = 300.0

    # TCP (and TLS) connect timeout in seconds
    connect_timeout: float = 10.0

    # Maximum sockets kept open to the server at once
    max_open_connections: int = 10

    # Seconds an idle pooled socket may be reused
    keep_alive_timeout: float = 2.5

    compression: CompressionSettings = field(default_factory=CompressionSettings)

    # Settings applied to every statement issued by the client
    clickhouse_settings: Settings = field(default_factory=dict)

    # Server session bound to every statement of the client
    session_id: Optional[str] = None

    # Name prepended to the User-Agent header
    application: Optional[str] = None

    # CA bundle for https URLs
    ca_file: Optional[str] = None

    # Verify the server certificate for https URLs
    verify_tls: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")

        if self.max_open_connections < 1:
            raise ValueError("max_open_connections must be at least 1")

        if self.keep_alive_timeout < 0:
            raise ValueError("keep_alive_timeout must be non-negative")

        # Raises ValueError for malformed URLs
        URLComponents.from_url(self.url)

    def to_connection_params(self) -> "ConnectionParams":
        """Resolve this configuration into immutable connection parameters."""
        url = URLComponents.from_url(self.url)
        if not self.verify_tls and url.scheme == "https":
            logger.warning(
                "TLS certificate verification is DISABLED. "
                "Only use this for testing with self-signed certificates."
            )

        return ConnectionParams(
            url=url,
            username=self.username,
            password=self.password,
            database=self.database,
            clickhouse_settings=MappingProxyType(dict(self.clickhouse_settings)),
            request_timeout=self.request_timeout,
            connect_timeout=self.connect_timeout,
            max_open_connections=self.max_open_connections,
            keep_alive_timeout=self.keep_alive_timeout,
            compression=self.compression,
            application_id=self.application,
            ca_file=self.ca_file,
            verify_tls=self.verify_tls,
        )


@dataclass(frozen=True)
class ConnectionParams:
    """Immutable parameters of a connection, resolved once."""

    url: URLComponents
    username: str
    password: str
    database: str
    clickhouse_settings: Mapping[str, Any]
    request_timeout: float
    connect_timeout: float
    max_open_connections: int
    keep_alive_timeout: float
    compression: CompressionSettings
    application_id: Optional[str] = None
    ca_file: Optional[str] = None
    verify_tls: bool = True
