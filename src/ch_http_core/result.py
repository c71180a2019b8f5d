"""
Result sets.

A ResultSet wraps the response stream of a query together with the
format it was requested in, and materializes it as text, JSON or a
stream of rows.
"""

import json
from typing import Any, AsyncIterator, List

from .data_formats import STREAMABLE_JSON_FORMATS, SINGLE_DOCUMENT_JSON_FORMATS
from .exceptions import ValidationError
from .streams import ResponseStream, read_stream_to_text


class Row:
    """One line of an each-row result."""

    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text

    def json(self) -> Any:
        """Parse the row as JSON."""
        return json.loads(self.text)

    def __repr__(self) -> str:
        return f"Row({self.text!r})"


class ResultSet:
    """Result of a query."""

    def __init__(self, stream: ResponseStream, format: str, query_id: str) -> None:
        self._stream = stream
        self._format = format
        self.query_id = query_id

    async def text(self) -> str:
        """Read the whole result as text."""
        return await read_stream_to_text(self._stream)

    async def json(self) -> Any:
        """
        Read the whole result as JSON.

        Single-document formats give the parsed document; each-row
        formats give a list with one parsed value per row.
        """
        if self._format in STREAMABLE_JSON_FORMATS:
            return [row.json() async for row in self.stream()]

        if self._format in SINGLE_DOCUMENT_JSON_FORMATS:
            return json.loads(await self.text())

        raise ValidationError(f"Cannot decode {self._format} as JSON")

    async def stream(self) -> AsyncIterator[Row]:
        """
        Iterate over the rows of an each-row result.

        Rows are split on newlines as the body arrives.
        """
        if self._format in SINGLE_DOCUMENT_JSON_FORMATS:
            raise ValidationError(f"{self._format} format is not streamable")

        pending = b""
        async for chunk in self._stream:
            pending += chunk
            lines: List[bytes] = pending.split(b"\n")
            pending = lines.pop()
            for line in lines:
                if line:
                    yield Row(line.decode("utf-8"))

        if pending:
            yield Row(pending.decode("utf-8"))

    async def close(self) -> None:
        """Close the underlying stream, destroying its socket if unread."""
        await self._stream.aclose()

    async def __aenter__(self) -> "ResultSet":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def format(self) -> str:
        return self._format

    @property
    def response_stream(self) -> ResponseStream:
        return self._stream
