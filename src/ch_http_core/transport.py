"""
Request transport for ch_http_core.

An Exchange runs exactly one HTTP request/response cycle over a pooled
socket and settles its outcome exactly once. Several sources race to
settle it:

- the response head arriving (success stream, or a classified error),
- a socket, protocol or body pipeline failure,
- the caller's cancellation token firing,
- the socket's idle timer firing.

The first one wins; every later transition is a no-op. Closing the
exchange is separate bookkeeping: it detaches the token callback,
disarms the idle timer and hands the socket back to the pool, so
nothing registered for one exchange survives into the next one.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, List, Optional, Tuple, Union

from .cancellation import CancellationToken
from .config import ConnectionParams
from .connection_pool import ConnectionPool
from .error_parser import parse_error
from .exceptions import (
    CancellationError,
    ClickHouseClientError,
    ConnectionError,
    ProtocolError,
    TimeoutError,
    TransportError,
)
from .http11 import HTTP11Connection
from .http_primitives import Request, Response
from .network import AsyncioNetworkBackend, NetworkBackend
from .network.utils import create_ssl_context, format_host_header
from .search_params import SearchParams, encode_search_params
from .streams import RequestStream, ResponseStream, gzip_stream, read_stream_to_text
from .user_agent import get_user_agent

logger = logging.getLogger(__name__)

Body = Union[bytes, str, AsyncIterable[Union[bytes, str]]]

# Headers never written to logs
_SENSITIVE_HEADERS = {b"authorization", b"host"}


class ExchangeState(Enum):
    """Settlement states of an exchange."""
    PENDING = "pending"     # Nothing has settled the outcome yet
    RESOLVED = "resolved"   # Settled with a response stream
    REJECTED = "rejected"   # Settled with an error


@dataclass(frozen=True)
class RequestParams:
    """Everything the transport needs to know about one request."""

    method: str
    pathname: str
    search_params: SearchParams = ()
    body: Optional[Body] = None
    cancel_token: Optional[CancellationToken] = None
    decompress_response: bool = False
    compress_request: bool = False


class Exchange:
    """
    One HTTP exchange and its settle-once outcome.

    Exchange objects are created by HTTPTransport.request() and should
    not be reused.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        request: Request,
        params: RequestParams,
        request_timeout: float,
    ) -> None:
        self._pool = pool
        self._request = request
        self._params = params
        self._request_timeout = request_timeout

        self._state = ExchangeState.PENDING
        self._outcome: asyncio.Future = asyncio.get_running_loop().create_future()
        self._connection: Optional[HTTP11Connection] = None
        self._driver: Optional[asyncio.Task] = None
        self._failure: Optional[ClickHouseClientError] = None
        self._closed = False
        self._started_at = time.monotonic()

    async def run(self) -> ResponseStream:
        """
        Start the exchange and wait for its outcome.

        Returns:
            The response body stream of a 2xx response

        Raises:
            CancellationError: If the token fired first
            TimeoutError: If the socket went idle for too long
            ServerError: If the server rejected the statement
            TransportError: For any other failure
        """
        token = self._params.cancel_token
        if token is not None:
            if token.cancelled:
                raise CancellationError()
            token.add_callback(self._on_abort)

        self._driver = asyncio.ensure_future(self._drive())
        try:
            return await self._outcome
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled
            self._destroy(CancellationError())
            raise

    async def _drive(self) -> None:
        try:
            connection = await self._pool.get_connection()
            if not self._on_socket(connection):
                return
            await connection.send_request(self._request)
            response = await connection.receive_response()
            await self._on_response(response)
        except asyncio.CancelledError:
            # Only _destroy() cancels the driver, after settling
            raise
        except Exception as e:
            self._on_error(e)

    def _on_socket(self, connection: HTTP11Connection) -> bool:
        if self._closed:
            # Destroyed while waiting for a socket
            self._pool.release(connection)
            return False

        self._connection = connection
        connection.arm_idle_timeout(self._request_timeout, self._on_timeout)
        return True

    async def _on_response(self, response: Response) -> None:
        self._log_response(response)

        decompress = False
        encoding = response.get_header(b"content-encoding")
        if encoding is not None and encoding.lower() != b"identity":
            if encoding.lower() != b"gzip":
                raise ProtocolError(f"Unexpected encoding: {encoding.decode('latin-1')}")
            decompress = True

        stream = ResponseStream(self, response.status_code, response.headers, decompress)

        if response.is_success:
            self._resolve(stream)
        else:
            body = await read_stream_to_text(stream)
            self._reject(parse_error(body, response.status_code))

    def _on_error(self, error: Exception) -> None:
        self._destroy(_as_client_error(error))

    def _on_abort(self) -> None:
        self._destroy(CancellationError())

    def _on_timeout(self) -> None:
        self._destroy(TimeoutError("Socket was idle for too long", self._request_timeout))

    def _on_close(self) -> None:
        """Detach everything registered for this exchange. Never settles."""
        if self._closed:
            return
        self._closed = True

        token = self._params.cancel_token
        if token is not None:
            token.remove_callback(self._on_abort)

        if self._connection is not None:
            self._pool.release(self._connection)

    def _resolve(self, stream: ResponseStream) -> None:
        if self._state is not ExchangeState.PENDING:
            return
        self._state = ExchangeState.RESOLVED
        if not self._outcome.done():
            self._outcome.set_result(stream)

    def _reject(self, error: ClickHouseClientError) -> None:
        if self._state is not ExchangeState.PENDING:
            return
        self._state = ExchangeState.REJECTED
        if not self._outcome.done():
            self._outcome.set_exception(error)

    def _destroy(self, error: ClickHouseClientError) -> None:
        """Fail the exchange and tear down its socket."""
        if self._failure is None:
            self._failure = error
            logger.debug(f"Exchange failed: {error}")

        self._reject(error)

        if self._connection is not None and not self._closed:
            self._connection.abort()

        if (
            self._driver is not None
            and not self._driver.done()
            and self._driver is not asyncio.current_task()
        ):
            self._driver.cancel()

        self._on_close()

    async def receive_body_chunk(self) -> Optional[bytes]:
        """
        Read the next raw chunk of the response body.

        Returns:
            Chunk of data or None if end of body

        Raises:
            The error that destroyed the exchange, if any
        """
        if self._failure is not None:
            raise self._failure

        if self._closed or self._connection is None:
            return None

        try:
            chunk = await self._connection.receive_body_chunk()
        except asyncio.CancelledError:
            self.abandon()
            raise
        except Exception as e:
            if self._failure is not None:
                # Socket torn down by cancellation or timeout
                raise self._failure from e
            error = _as_client_error(e)
            self._destroy(error)
            raise error from e

        if chunk is None:
            self._on_close()
        return chunk

    def abandon(self) -> None:
        """Destroy the socket of a response nobody will read further."""
        if self._closed:
            return
        if self._connection is not None:
            self._connection.abort()
        self._on_close()

    def _log_response(self, response: Response) -> None:
        duration_ms = int((time.monotonic() - self._started_at) * 1000)
        request_headers = {
            name.decode("latin-1"): value.decode("latin-1")
            for name, value in self._request.headers
            if name.lower() not in _SENSITIVE_HEADERS
        }
        logger.debug(
            f"{self._params.method} {self._params.pathname} -> {response.status_code} ({duration_ms}ms)",
            extra={
                "request_method": self._params.method,
                "request_path": self._params.pathname,
                "request_params": self._request.query.decode("ascii"),
                "request_headers": request_headers,
                "response_status": response.status_code,
                "response_headers": {
                    name.decode("latin-1"): value.decode("latin-1")
                    for name, value in response.headers
                },
                "response_time_ms": duration_ms,
            },
        )

    @property
    def state(self) -> ExchangeState:
        """Settlement state of the exchange."""
        return self._state

    @property
    def closed(self) -> bool:
        """Check if the exchange released its resources."""
        return self._closed


def _as_client_error(error: BaseException) -> ClickHouseClientError:
    if isinstance(error, ClickHouseClientError):
        return error
    if isinstance(error, (OSError, RuntimeError)):
        return ConnectionError(str(error) or repr(error), cause=error)
    return TransportError(repr(error), cause=error)


class HTTPTransport:
    """
    Sends requests to the database server over pooled sockets.

    Default headers are computed once at construction and never
    modified afterwards; per-request headers are appended to a copy.
    """

    def __init__(
        self,
        params: ConnectionParams,
        backend: Optional[NetworkBackend] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            params: Resolved connection parameters
            backend: Network backend; the asyncio backend if omitted
        """
        self._params = params
        url = params.url

        ssl_context = None
        if url.scheme == "https":
            ssl_context = create_ssl_context(ca_file=params.ca_file, verify=params.verify_tls)

        self._pool = ConnectionPool(
            backend or AsyncioNetworkBackend(),
            host=url.host,
            port=url.port,
            scheme=url.scheme,
            max_connections=params.max_open_connections,
            keep_alive_timeout=params.keep_alive_timeout,
            connect_timeout=params.connect_timeout,
            ssl_context=ssl_context,
        )
        self._headers: Tuple[Tuple[bytes, bytes], ...] = self._build_default_headers()

    def _build_default_headers(self) -> Tuple[Tuple[bytes, bytes], ...]:
        params = self._params
        credentials = base64.b64encode(f"{params.username}:{params.password}".encode()).decode()
        host = format_host_header(params.url.host, params.url.port, params.url.scheme)
        return (
            (b"Host", host.encode("idna")),
            (b"Authorization", f"Basic {credentials}".encode()),
            (b"User-Agent", get_user_agent(params.application_id).encode()),
            (b"Connection", b"keep-alive"),
        )

    def build_request(self, params: RequestParams) -> Request:
        """
        Build the Request for a set of request parameters.

        Literal bodies are wrapped in a single-chunk stream; when
        request compression is on the body is piped through gzip.
        """
        headers: List[Tuple[bytes, bytes]] = list(self._headers)
        if params.decompress_response:
            headers.append((b"Accept-Encoding", b"gzip"))

        stream = None
        if params.body is not None:
            stream = RequestStream(params.body)
            if params.compress_request:
                headers.append((b"Content-Encoding", b"gzip"))
                stream = RequestStream(gzip_stream(stream))

            content_length = stream.content_length
            if content_length is not None:
                headers.append((b"Content-Length", str(content_length).encode()))
            else:
                headers.append((b"Transfer-Encoding", b"chunked"))

        query = encode_search_params(list(params.search_params))
        target = self._params.url.target(params.pathname, query)
        return Request.create(params.method, target, headers, stream)

    async def request(self, params: RequestParams) -> ResponseStream:
        """
        Execute one exchange.

        Args:
            params: Request parameters

        Returns:
            The response body stream of a 2xx response
        """
        request = self.build_request(params)
        exchange = Exchange(self._pool, request, params, self._params.request_timeout)
        return await exchange.run()

    async def close(self) -> None:
        """Close every pooled socket."""
        await self._pool.stop()

    @property
    def headers(self) -> Tuple[Tuple[bytes, bytes], ...]:
        """Default headers sent with every request."""
        return self._headers

    @property
    def pool(self) -> ConnectionPool:
        """The connection pool of the transport."""
        return self._pool
