"""
Connection operations for ch_http_core.

Connection maps the logical operations (query, exec, insert, ping,
close) onto single exchanges of the HTTP transport.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, NamedTuple, Optional

from typing_extensions import TypedDict

from .cancellation import CancellationToken
from .config import ConnectionParams
from .network import NetworkBackend
from .search_params import to_search_params
from .streams import ResponseStream, close_stream
from .transport import Body, HTTPTransport, RequestParams

logger = logging.getLogger(__name__)

SUMMARY_HEADER = "x-clickhouse-summary"


class ClickHouseSummary(TypedDict, total=False):
    """Progress summary the server sends in the X-ClickHouse-Summary header."""
    read_rows: str
    read_bytes: str
    written_rows: str
    written_bytes: str
    total_rows_to_read: str
    result_rows: str
    result_bytes: str
    elapsed_ns: str


@dataclass(frozen=True)
class QueryParams:
    """Parameters of a statement sent as the request body."""

    query: str
    clickhouse_settings: Optional[Mapping[str, Any]] = None
    query_params: Optional[Mapping[str, Any]] = None
    cancel_token: Optional[CancellationToken] = None
    query_id: Optional[str] = None
    session_id: Optional[str] = None


ExecParams = QueryParams


@dataclass(frozen=True)
class InsertParams:
    """Parameters of an INSERT whose data is the request body."""

    query: str
    values: Body
    clickhouse_settings: Optional[Mapping[str, Any]] = None
    query_params: Optional[Mapping[str, Any]] = None
    cancel_token: Optional[CancellationToken] = None
    query_id: Optional[str] = None
    session_id: Optional[str] = None


class QueryResult(NamedTuple):
    """Response stream of a query or exec."""
    stream: ResponseStream
    query_id: str
    summary: Optional[ClickHouseSummary] = None


class InsertResult(NamedTuple):
    """Outcome of an insert."""
    query_id: str
    summary: Optional[ClickHouseSummary] = None


class PingResult(NamedTuple):
    """Outcome of a health check."""
    ok: bool
    error: Optional[Exception] = None


def with_http_settings(
    clickhouse_settings: Optional[Mapping[str, Any]],
    compression: bool,
) -> Dict[str, Any]:
    """Put enable_http_compression under the given settings."""
    settings: Dict[str, Any] = {"enable_http_compression": 1} if compression else {}
    settings.update(clickhouse_settings or {})
    return settings


def parse_summary(stream: ResponseStream) -> Optional[ClickHouseSummary]:
    """Parse the summary header of a response, None if absent or invalid."""
    value = stream.get_header(SUMMARY_HEADER)
    if value is None:
        return None
    try:
        summary = json.loads(value)
    except ValueError:
        logger.debug(f"Ignoring malformed summary header: {value!r}")
        return None
    return summary if isinstance(summary, dict) else None


class Connection:
    """
    Operation facade over the HTTP transport.

    A Connection owns its transport and the transport's socket pool.
    Operations may run concurrently; each one is an independent
    exchange.
    """

    def __init__(
        self,
        params: ConnectionParams,
        backend: Optional[NetworkBackend] = None,
    ) -> None:
        """
        Initialize the connection.

        Args:
            params: Resolved connection parameters
            backend: Network backend; the asyncio backend if omitted
        """
        self._params = params
        self._transport = HTTPTransport(params, backend)

    async def query(self, params: QueryParams) -> QueryResult:
        """
        Send a statement whose result the caller will read.

        Response compression is requested when the connection policy
        enables it, unless the call's settings turn it off.
        """
        query_id = self._get_query_id(params.query_id)
        clickhouse_settings = with_http_settings(
            params.clickhouse_settings,
            self._params.compression.decompress_response,
        )
        search_params = to_search_params(
            database=self._params.database,
            query_id=query_id,
            clickhouse_settings=clickhouse_settings,
            query_params=params.query_params,
            session_id=params.session_id,
        )

        stream = await self._transport.request(
            RequestParams(
                method="POST",
                pathname="/",
                search_params=search_params,
                body=params.query,
                cancel_token=params.cancel_token,
                decompress_response=_is_enabled(clickhouse_settings.get("enable_http_compression")),
            )
        )
        return QueryResult(stream, query_id, parse_summary(stream))

    async def exec(self, params: ExecParams) -> QueryResult:
        """Send a statement; the response is never compressed."""
        query_id = self._get_query_id(params.query_id)
        search_params = to_search_params(
            database=self._params.database,
            query_id=query_id,
            clickhouse_settings=params.clickhouse_settings,
            query_params=params.query_params,
            session_id=params.session_id,
        )

        stream = await self._transport.request(
            RequestParams(
                method="POST",
                pathname="/",
                search_params=search_params,
                body=params.query,
                cancel_token=params.cancel_token,
            )
        )
        return QueryResult(stream, query_id, parse_summary(stream))

    async def insert(self, params: InsertParams) -> InsertResult:
        """
        Send encoded values; the statement travels in the query string.

        The response carries no useful payload and is disposed of at once.
        """
        query_id = self._get_query_id(params.query_id)
        search_params = to_search_params(
            database=self._params.database,
            query_id=query_id,
            clickhouse_settings=params.clickhouse_settings,
            query_params=params.query_params,
            session_id=params.session_id,
            query=params.query,
        )

        stream = await self._transport.request(
            RequestParams(
                method="POST",
                pathname="/",
                search_params=search_params,
                body=params.values,
                cancel_token=params.cancel_token,
                compress_request=self._params.compression.compress_request,
            )
        )
        summary = parse_summary(stream)
        await close_stream(stream)
        return InsertResult(query_id, summary)

    async def ping(self) -> PingResult:
        """
        Health check against /ping.

        Never raises: failures are returned inside the result.
        """
        try:
            stream = await self._transport.request(RequestParams(method="GET", pathname="/ping"))
            await close_stream(stream)
        except Exception as e:
            logger.debug(f"Ping failed: {e}")
            return PingResult(ok=False, error=e)
        return PingResult(ok=True)

    async def close(self) -> None:
        """Release pooled sockets."""
        await self._transport.close()

    @staticmethod
    def _get_query_id(query_id: Optional[str]) -> str:
        return query_id or str(uuid.uuid4())

    @property
    def transport(self) -> HTTPTransport:
        """The HTTP transport of the connection."""
        return self._transport


def _is_enabled(value: Any) -> bool:
    return value in (1, True, "1")
