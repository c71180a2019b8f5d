"""
Data formats and insert values encoding.

Inserts accept three kinds of payloads: an in-memory sequence of rows,
a structured JSON document (a dict), or an async stream. Sequences and
documents are checked against the format before anything is sent;
streams are checked item by item while they are being sent.
"""

import json
from typing import Any, AsyncIterable, AsyncIterator, Mapping, Sequence, Union

from .exceptions import ValidationError

STREAMABLE_JSON_FORMATS = (
    "JSONEachRow",
    "JSONStringsEachRow",
    "JSONCompactEachRow",
    "JSONCompactStringsEachRow",
    "JSONCompactEachRowWithNames",
    "JSONCompactEachRowWithNamesAndTypes",
    "JSONCompactStringsEachRowWithNames",
    "JSONCompactStringsEachRowWithNamesAndTypes",
)

SINGLE_DOCUMENT_JSON_FORMATS = (
    "JSON",
    "JSONStrings",
    "JSONCompact",
    "JSONCompactStrings",
    "JSONColumnsWithMetadata",
    "JSONObjectEachRow",
)

RAW_FORMATS = (
    "CSV",
    "CSVWithNames",
    "CSVWithNamesAndTypes",
    "TabSeparated",
    "TabSeparatedRaw",
    "TabSeparatedWithNames",
    "TabSeparatedWithNamesAndTypes",
    "CustomSeparated",
    "CustomSeparatedWithNames",
    "CustomSeparatedWithNamesAndTypes",
    "Parquet",
)

SUPPORTED_FORMATS = STREAMABLE_JSON_FORMATS + SINGLE_DOCUMENT_JSON_FORMATS + RAW_FORMATS

# Each-row formats whose rows are objects; the rest of the family uses arrays
OBJECT_ROW_FORMATS = ("JSONEachRow", "JSONStringsEachRow")

# Single-document formats whose payload is {"meta": [...], "data": [...]}
DATA_DOCUMENT_FORMATS = ("JSON", "JSONStrings", "JSONCompact", "JSONCompactStrings")

InsertValues = Union[Sequence[Any], Mapping[str, Any], AsyncIterable[Any]]


def is_stream(values: Any) -> bool:
    """Check if values is an async iterable."""
    return hasattr(values, "__aiter__")


def is_json_format(format: str) -> bool:
    return format in STREAMABLE_JSON_FORMATS or format in SINGLE_DOCUMENT_JSON_FORMATS


def validate_insert_values(values: InsertValues, format: str) -> None:
    """
    Check that a payload can be inserted in the given format.

    Raises:
        ValidationError: If the format is unknown or the payload does not fit it
    """
    if format not in SUPPORTED_FORMATS:
        raise ValidationError(f"Unsupported data format: {format}")

    if is_stream(values):
        return

    if isinstance(values, (str, bytes, bytearray)):
        raise ValidationError(
            f"Insert expected values to be a sequence, a stream of values or a JSON object, "
            f"got: {type(values).__name__}"
        )

    if isinstance(values, Mapping):
        _validate_document(values, format)
        return

    if isinstance(values, Sequence):
        _validate_rows(values, format)
        return

    raise ValidationError(
        f"Insert expected values to be a sequence, a stream of values or a JSON object, "
        f"got: {type(values).__name__}"
    )


def _validate_rows(rows: Sequence[Any], format: str) -> None:
    if format not in STREAMABLE_JSON_FORMATS:
        raise ValidationError(
            f"Cannot insert a sequence of rows in {format} format; "
            f"use one of {', '.join(STREAMABLE_JSON_FORMATS)} or a stream"
        )

    object_rows = format in OBJECT_ROW_FORMATS
    for index, row in enumerate(rows):
        if object_rows and not isinstance(row, Mapping):
            raise ValidationError(
                f"Row {index} must be an object for {format} format, got: {type(row).__name__}"
            )
        if not object_rows and not isinstance(row, (list, tuple)):
            raise ValidationError(
                f"Row {index} must be an array for {format} format, got: {type(row).__name__}"
            )


def _validate_document(document: Mapping[str, Any], format: str) -> None:
    if format not in SINGLE_DOCUMENT_JSON_FORMATS:
        raise ValidationError(
            f"Cannot insert a JSON object in {format} format; "
            f"use one of {', '.join(SINGLE_DOCUMENT_JSON_FORMATS)}"
        )

    if format in DATA_DOCUMENT_FORMATS and not isinstance(document.get("data"), list):
        raise ValidationError(f"{format} payload must contain a 'data' list")


def encode_json(value: Any) -> str:
    """Encode one value as a line of JSON."""
    return json.dumps(value, default=str, ensure_ascii=False, separators=(",", ":")) + "\n"


def encode_values(values: InsertValues, format: str) -> Union[bytes, AsyncIterator[bytes]]:
    """
    Encode a validated payload for the request body.

    Returns:
        Bytes for in-memory payloads, an async byte stream for streams
    """
    if is_stream(values):
        return _encode_stream(values, format)

    if isinstance(values, Mapping):
        return encode_json(values).encode("utf-8")

    return "".join(encode_json(row) for row in values).encode("utf-8")


async def _encode_stream(values: AsyncIterable[Any], format: str) -> AsyncIterator[bytes]:
    json_format = is_json_format(format)
    async for item in values:
        if isinstance(item, (bytes, bytearray, str)):
            if json_format:
                raise ValidationError(
                    f"Insert for {format} expected a stream of objects, got: {type(item).__name__}"
                )
            yield item.encode("utf-8") if isinstance(item, str) else bytes(item)
        else:
            if not json_format:
                raise ValidationError(
                    f"Insert for {format} expected a stream of bytes or str, got: {type(item).__name__}"
                )
            yield encode_json(item).encode("utf-8")
