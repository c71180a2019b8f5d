"""
Query-string encoding of statement options.

Settings, bound parameters, session and query ids all travel as URL
query-string parameters of the request. Bound parameters are
prefixed with ``param_`` so the server can tell them from settings.
"""

import math
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

SearchParams = List[Tuple[str, str]]

PARAM_PREFIX = "param_"


def to_search_params(
    database: Optional[str],
    query_id: str,
    clickhouse_settings: Optional[Mapping[str, Any]] = None,
    query_params: Optional[Mapping[str, Any]] = None,
    session_id: Optional[str] = None,
    query: Optional[str] = None,
) -> SearchParams:
    """
    Build the ordered query-string pairs of a request.

    Args:
        database: Target database; omitted when None or "default"
        query_id: Identifier of the statement
        clickhouse_settings: Server settings; None values are skipped
        query_params: Values bound to {name:Type} placeholders
        session_id: Optional server session
        query: Statement text, only for requests whose body carries data

    Returns:
        List of (key, value) string pairs
    """
    params: SearchParams = [("query_id", query_id)]

    if query_params:
        for key, value in query_params.items():
            params.append((PARAM_PREFIX + key, format_query_param(value)))

    if clickhouse_settings:
        for key, value in clickhouse_settings.items():
            if value is not None:
                params.append((key, format_setting(value)))

    if database is not None and database != "default":
        params.append(("database", database))

    if query:
        params.append(("query", query))

    if session_id:
        params.append(("session_id", session_id))

    return params


def encode_search_params(params: SearchParams) -> str:
    """URL-encode query-string pairs."""
    return urlencode(params)


def format_setting(value: Any) -> str:
    """Render a setting value."""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def format_query_param(value: Any, wrap_strings: bool = False) -> str:
    """
    Render a bound parameter in the server's text parameter syntax.

    Strings nested inside arrays, tuples and maps are single-quoted;
    top-level strings are sent as is, with tabs, newlines and
    backslashes escaped.
    """
    if value is None:
        return "\\N"

    if isinstance(value, bool):
        return "1" if value else "0"

    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "+inf" if value > 0 else "-inf"
        return repr(value)

    if isinstance(value, int):
        return str(value)

    if isinstance(value, datetime):
        return str(int(value.timestamp()))

    if isinstance(value, date):
        return _format_string(value.isoformat(), wrap_strings)

    if isinstance(value, (list, tuple)):
        items = ",".join(format_query_param(item, wrap_strings=True) for item in value)
        if isinstance(value, tuple):
            return f"({items})"
        return f"[{items}]"

    if isinstance(value, Mapping):
        pairs = ",".join(
            f"{format_query_param(key, wrap_strings=True)}:{format_query_param(item, wrap_strings=True)}"
            for key, item in value.items()
        )
        return "{" + pairs + "}"

    return _format_string(str(value), wrap_strings)


def _format_string(value: str, wrap: bool) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
    )
    if wrap:
        escaped = escaped.replace("'", "\\'")
        return f"'{escaped}'"
    return escaped
