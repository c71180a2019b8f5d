"""
Classification of non-2xx responses.

The server reports failures as text such as::

    Code: 62. DB::Exception: Syntax error: failed at position 1 ('SELEC'). (SYNTAX_ERROR) (version 23.8.1.1)

parse_error() turns that into a ServerError. Anything it cannot parse
becomes an HTTPStatusError carrying the raw body and status code.
"""

import re
from typing import Optional, Union

from .exceptions import HTTPStatusError, ServerError

_ERROR_RE = re.compile(
    r"(?:Code|Error): (?P<code>\d+).*Exception: (?P<message>.+)\((?P<type>(?=.+[A-Z]{3})[A-Z0-9_]+?)\)",
    re.DOTALL,
)


def parse_error(body: str, status_code: Optional[int] = None) -> Union[ServerError, HTTPStatusError]:
    """
    Classify an error response body.

    Never raises.

    Args:
        body: Full response body as text
        status_code: HTTP status of the response

    Returns:
        ServerError when the body is a server error envelope,
        HTTPStatusError otherwise
    """
    match = _ERROR_RE.search(body)
    if match is not None:
        return ServerError(
            message=match.group("message").strip(),
            code=int(match.group("code")),
            type=match.group("type"),
            status_code=status_code,
        )

    return HTTPStatusError(status_code if status_code is not None else 0, body)
