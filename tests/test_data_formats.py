"""
Tests for insert values validation and encoding.
"""

from datetime import date
from decimal import Decimal

import pytest

from ch_http_core.data_formats import encode_json, encode_values, validate_insert_values
from ch_http_core.exceptions import ValidationError
from ch_http_core.streams import read_stream_to_bytes


class TestValidateInsertValues:
    """Test validate_insert_values."""

    def test_unsupported_format(self):
        """Test unknown formats are rejected."""
        with pytest.raises(ValidationError):
            validate_insert_values([[1]], "Native")

    @pytest.mark.parametrize("format", ["JSONCompactEachRow", "JSONCompactStringsEachRowWithNames"])
    def test_array_rows(self, format):
        """Test the compact family takes array rows."""
        validate_insert_values([[1, "a"], (2, "b")], format)
        with pytest.raises(ValidationError):
            validate_insert_values([{"id": 1}], format)

    @pytest.mark.parametrize("format", ["JSONEachRow", "JSONStringsEachRow"])
    def test_object_rows(self, format):
        """Test object-row formats take dict rows."""
        validate_insert_values([{"id": 1}], format)
        with pytest.raises(ValidationError):
            validate_insert_values([[1]], format)

    @pytest.mark.parametrize("format", ["CSV", "TabSeparated", "JSON", "Parquet"])
    def test_rows_need_each_row_format(self, format):
        """Test sequences only go with each-row JSON formats."""
        with pytest.raises(ValidationError):
            validate_insert_values([[1]], format)

    def test_documents(self):
        """Test single-document formats."""
        validate_insert_values({"meta": [], "data": [{"id": 1}]}, "JSON")
        validate_insert_values({"data": [[1]]}, "JSONCompact")
        validate_insert_values({"row_1": {"id": 1}}, "JSONObjectEachRow")

    def test_document_without_data(self):
        """Test JSON documents need a data list."""
        with pytest.raises(ValidationError):
            validate_insert_values({"rows": []}, "JSON")

    def test_document_with_row_format(self):
        """Test dicts do not go with each-row formats."""
        with pytest.raises(ValidationError):
            validate_insert_values({"id": 1}, "JSONEachRow")

    @pytest.mark.parametrize("values", ["1,a\n", b"1,a\n", 42, None])
    def test_invalid_payloads(self, values):
        """Test payloads that are none of sequence, dict or stream."""
        with pytest.raises(ValidationError):
            validate_insert_values(values, "CSV")

    def test_streams_accepted(self, async_data_generator):
        """Test streams are accepted for any supported format."""
        validate_insert_values(async_data_generator([]), "CSV")
        validate_insert_values(async_data_generator([]), "JSONEachRow")


class TestEncodeValues:
    """Test encode_values."""

    def test_rows(self):
        """Test rows become newline-delimited JSON."""
        assert encode_values([[1, "a"], [2, None]], "JSONCompactEachRow") == b'[1,"a"]\n[2,null]\n'

    def test_document(self):
        """Test a document becomes one line of JSON."""
        assert encode_values({"data": [{"id": 1}]}, "JSON") == b'{"data":[{"id":1}]}\n'

    def test_non_json_values(self):
        """Test dates and decimals are encoded as strings."""
        assert encode_json({"d": date(2024, 1, 2), "n": Decimal("1.50")}) == '{"d":"2024-01-02","n":"1.50"}\n'

    def test_unicode_kept(self):
        """Test non-ASCII text is not escaped."""
        assert encode_values([{"name": "café"}], "JSONEachRow") == '{"name":"café"}\n'.encode("utf-8")

    @pytest.mark.asyncio
    async def test_raw_stream(self, async_data_generator):
        """Test raw formats pass bytes and text through."""
        encoded = encode_values(async_data_generator([b"1,a\n", "2,b\n"]), "CSV")
        assert await read_stream_to_bytes(encoded) == b"1,a\n2,b\n"

    @pytest.mark.asyncio
    async def test_json_stream(self, async_data_generator):
        """Test JSON formats encode objects."""
        encoded = encode_values(async_data_generator([{"id": 1}, {"id": 2}]), "JSONEachRow")
        assert await read_stream_to_bytes(encoded) == b'{"id":1}\n{"id":2}\n'

    @pytest.mark.asyncio
    async def test_json_stream_rejects_bytes(self, async_data_generator):
        """Test JSON formats need objects."""
        encoded = encode_values(async_data_generator([b'{"id":1}\n']), "JSONEachRow")
        with pytest.raises(ValidationError):
            await read_stream_to_bytes(encoded)

    @pytest.mark.asyncio
    async def test_raw_stream_rejects_objects(self, async_data_generator):
        """Test raw formats need bytes or text."""
        encoded = encode_values(async_data_generator([{"id": 1}]), "CSV")
        with pytest.raises(ValidationError):
            await read_stream_to_bytes(encoded)
