"""
HTTP primitives for ch_http_core.

The request and response heads exchanged with the server. Both are frozen:
a Request is built fresh for every exchange and dropped once it settles.
"""

from dataclasses import dataclass, field
from typing import (
    AsyncIterable,
    List,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)
from urllib.parse import urlparse


Headers = List[Tuple[bytes, bytes]]
StatusCode = int

DEFAULT_PORTS = {"http": 8123, "https": 8443}


class URLComponents(NamedTuple):
    """Server base URL split into the parts requests are built from."""
    scheme: str
    host: str
    port: int
    path: str

    @classmethod
    def from_url(cls, url: str) -> "URLComponents":
        """
        Create URLComponents from a URL string.

        Missing ports default to the database's HTTP ports
        (8123 for http, 8443 for https).

        Raises:
            ValueError: If the scheme is not http(s) or the host is missing
        """
        parsed = urlparse(url)
        scheme = parsed.scheme or "http"
        if scheme not in DEFAULT_PORTS:
            raise ValueError(f"Unsupported URL scheme: {scheme!r}")

        if not parsed.hostname:
            raise ValueError(f"No hostname found in URL: {url!r}")

        port = parsed.port or DEFAULT_PORTS[scheme]
        path = parsed.path.rstrip("/")

        return cls(scheme=scheme, host=parsed.hostname, port=port, path=path)

    def target(self, pathname: str, query: str = "") -> bytes:
        """Build a request target for a path below the base path."""
        target = self.path + pathname
        if query:
            target += "?" + query
        return target.encode("ascii")


@dataclass(frozen=True)
class Request:
    """
    One outgoing request: method, target, headers and an optional body.

    Header names and values are bytes, the form h11 expects.
    """

    method: bytes
    target: bytes
    headers: Headers = field(default_factory=list)
    stream: Optional[AsyncIterable[bytes]] = None

    def __post_init__(self) -> None:
        """Reject str values that h11 would not accept."""
        if not isinstance(self.method, bytes):
            raise ValueError("method must be bytes")

        if not isinstance(self.target, bytes):
            raise ValueError("target must be bytes")

        if not isinstance(self.headers, list):
            raise ValueError("headers must be a list")

        for name, value in self.headers:
            if not isinstance(name, bytes) or not isinstance(value, bytes):
                raise ValueError("header names and values must be bytes")

    @classmethod
    def create(
        cls,
        method: Union[str, bytes],
        target: Union[str, bytes],
        headers: Optional[Headers] = None,
        stream: Optional[AsyncIterable[bytes]] = None,
    ) -> "Request":
        """
        Build a Request, encoding str method and target.

        Args:
            method: HTTP method (GET, POST)
            target: Path and query string
            headers: Optional list of (name, value) header tuples
            stream: Body chunks, None for requests without a body

        Returns:
            New Request instance
        """
        if isinstance(method, str):
            method = method.encode()

        if isinstance(target, str):
            target = target.encode("ascii")

        if headers is None:
            headers = []

        return cls(method=method, target=target, headers=headers, stream=stream)

    def get_header(self, name: Union[str, bytes]) -> Optional[bytes]:
        """Get a header value by name (case-insensitive)."""
        return _find_header(self.headers, name)

    @property
    def path(self) -> bytes:
        """Target path without the query string."""
        return self.target.split(b"?", 1)[0]

    @property
    def query(self) -> bytes:
        """Query string of the target, without the leading '?'."""
        parts = self.target.split(b"?", 1)
        return parts[1] if len(parts) > 1 else b""


@dataclass(frozen=True)
class Response:
    """
    Immutable HTTP response head.

    The body is not part of this object; it is read through the
    connection that produced the response.
    """

    status_code: StatusCode
    headers: Headers = field(default_factory=list)
    reason: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.status_code, int):
            raise ValueError("status_code must be int")

        if not isinstance(self.headers, list):
            raise ValueError("headers must be a list")

    def get_header(self, name: Union[str, bytes]) -> Optional[bytes]:
        """Get a header value by name (case-insensitive)."""
        return _find_header(self.headers, name)

    def has_header(self, name: Union[str, bytes]) -> bool:
        """Whether the header is present, any case."""
        return self.get_header(name) is not None

    @property
    def is_success(self) -> bool:
        """Check if the status code is in [200, 300)."""
        return 200 <= self.status_code < 300


def _find_header(headers: Headers, name: Union[str, bytes]) -> Optional[bytes]:
    if isinstance(name, str):
        name = name.encode()

    name_lower = name.lower()
    for header_name, header_value in headers:
        if header_name.lower() == name_lower:
            return header_value

    return None
