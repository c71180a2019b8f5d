"""
Client facade for ch_http_core.

The Client normalizes statements, appends the FORMAT clause to queries,
validates and encodes insert payloads, merges settings and delegates
every operation to a Connection.
"""

import logging
from typing import Any, Dict, Mapping, NamedTuple, Optional, Sequence, Union

from .cancellation import CancellationToken
from .config import ClientConfig
from .connection import (
    ClickHouseSummary,
    Connection,
    InsertParams,
    PingResult,
    QueryParams,
    QueryResult,
)
from .data_formats import InsertValues, encode_values, validate_insert_values
from .network import NetworkBackend
from .result import ResultSet
from .streams import close_stream

logger = logging.getLogger(__name__)

DEFAULT_QUERY_FORMAT = "JSON"
DEFAULT_INSERT_FORMAT = "JSONCompactEachRow"

# A list of column names, or {"except": [...]} to exclude columns
InsertColumns = Union[Sequence[str], Mapping[str, Sequence[str]]]


class CommandResult(NamedTuple):
    """Outcome of a command."""
    query_id: str
    summary: Optional[ClickHouseSummary] = None


class InsertResult(NamedTuple):
    """
    Outcome of an insert.

    executed is False, and query_id empty, when there was nothing to
    insert and no request was sent.
    """
    executed: bool
    query_id: str
    summary: Optional[ClickHouseSummary] = None


def remove_trailing_semicolons(query: str) -> str:
    """Remove the trailing run of semicolons from a statement."""
    # A statement made of semicolons only is left as is
    return query.rstrip(";") or query


def format_query(query: str, format: str) -> str:
    """Normalize a statement and append its FORMAT clause."""
    query = remove_trailing_semicolons(query.strip())
    return f"{query} \nFORMAT {format}"


def get_insert_query(
    table: str,
    format: str,
    columns: Optional[InsertColumns] = None,
) -> str:
    """
    Build the INSERT statement for a table.

    Args:
        table: Table name
        format: Data format of the values
        columns: Column names, or a mapping with an "except" list

    Returns:
        INSERT INTO <table> [(cols) | (* EXCEPT (cols))] FORMAT <format>
    """
    if isinstance(columns, str):
        columns = [columns]

    columns_part = ""
    if isinstance(columns, Mapping):
        excluded = columns.get("except") or []
        if isinstance(excluded, str):
            excluded = [excluded]
        if excluded:
            columns_part = f" (* EXCEPT ({', '.join(excluded)}))"
    elif columns:
        columns_part = f" ({', '.join(columns)})"

    return f"INSERT INTO {table.strip()}{columns_part} FORMAT {format}"


def _is_empty_rows(values: InsertValues) -> bool:
    return (
        isinstance(values, Sequence)
        and not isinstance(values, (str, bytes, bytearray))
        and len(values) == 0
    )


class Client:
    """
    Async client for the database HTTP interface.

    Example:
        async with Client(ClientConfig(url="http://localhost:8123")) as client:
            result = await client.query("SELECT 1 AS x")
            print(await result.json())
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        backend: Optional[NetworkBackend] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration; defaults if omitted
            backend: Network backend; the asyncio backend if omitted
        """
        self._config = config or ClientConfig()
        self._params = self._config.to_connection_params()
        self._connection = Connection(self._params, backend)
        url = self._params.url
        logger.debug(f"Client created for {url.scheme}://{url.host}:{url.port}")

    async def query(
        self,
        query: str,
        format: str = DEFAULT_QUERY_FORMAT,
        clickhouse_settings: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        query_id: Optional[str] = None,
    ) -> ResultSet:
        """
        Run a statement that has a result, such as SELECT.

        The FORMAT clause is added from the format argument and must not
        be part of the statement.

        Returns:
            ResultSet over the response stream
        """
        result = await self._connection.query(
            QueryParams(
                query=format_query(query, format),
                **self._with_client_params(clickhouse_settings, query_params, cancel_token, query_id),
            )
        )
        return ResultSet(result.stream, format, result.query_id)

    async def command(
        self,
        query: str,
        clickhouse_settings: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        query_id: Optional[str] = None,
    ) -> CommandResult:
        """Run a statement without useful output, such as DDL."""
        result = await self.exec(query, clickhouse_settings, query_params, cancel_token, query_id)
        await close_stream(result.stream)
        return CommandResult(result.query_id, result.summary)

    async def exec(
        self,
        query: str,
        clickhouse_settings: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        query_id: Optional[str] = None,
    ) -> QueryResult:
        """
        Run a statement and hand back the raw response stream.

        The caller must consume or close the stream, otherwise its
        socket is held until the request times out.
        """
        return await self._connection.exec(
            QueryParams(
                query=remove_trailing_semicolons(query.strip()),
                **self._with_client_params(clickhouse_settings, query_params, cancel_token, query_id),
            )
        )

    async def insert(
        self,
        table: str,
        values: InsertValues,
        format: str = DEFAULT_INSERT_FORMAT,
        columns: Optional[InsertColumns] = None,
        clickhouse_settings: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        query_id: Optional[str] = None,
    ) -> InsertResult:
        """
        Insert values into a table.

        Args:
            table: Table name
            values: Sequence of rows, JSON document or async stream
            format: Data format of the values
            columns: Column names, or {"except": [...]} to exclude columns

        Returns:
            InsertResult; executed is False for an empty sequence

        Raises:
            ValidationError: If values do not fit the format
        """
        if _is_empty_rows(values):
            return InsertResult(executed=False, query_id="")

        validate_insert_values(values, format)

        result = await self._connection.insert(
            InsertParams(
                query=get_insert_query(table, format, columns),
                values=encode_values(values, format),
                **self._with_client_params(clickhouse_settings, query_params, cancel_token, query_id),
            )
        )
        return InsertResult(executed=True, query_id=result.query_id, summary=result.summary)

    async def ping(self) -> PingResult:
        """Health check. Never raises; errors are returned in the result."""
        return await self._connection.ping()

    async def close(self) -> None:
        """Close the connection and its sockets."""
        await self._connection.close()

    def _with_client_params(
        self,
        clickhouse_settings: Optional[Mapping[str, Any]],
        query_params: Optional[Mapping[str, Any]],
        cancel_token: Optional[CancellationToken],
        query_id: Optional[str],
    ) -> Dict[str, Any]:
        settings = dict(self._params.clickhouse_settings)
        settings.update(clickhouse_settings or {})
        return {
            "clickhouse_settings": settings,
            "query_params": query_params,
            "cancel_token": cancel_token,
            "query_id": query_id,
            "session_id": self._config.session_id,
        }

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def connection(self) -> Connection:
        """The underlying connection."""
        return self._connection


def create_client(
    config: Optional[ClientConfig] = None,
    backend: Optional[NetworkBackend] = None,
    **kwargs: Any,
) -> Client:
    """
    Create a client.

    Args:
        config: Client configuration; built from kwargs if omitted
        backend: Network backend; the asyncio backend if omitted
        **kwargs: ClientConfig fields

    Returns:
        Client instance
    """
    if config is None:
        config = ClientConfig(**kwargs)
    elif kwargs:
        raise ValueError("Pass either a config or config fields, not both")
    return Client(config, backend)
