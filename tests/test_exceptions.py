"""
Tests for the exception hierarchy.
"""

import pytest

from ch_http_core.exceptions import (
    CancellationError,
    ClickHouseClientError,
    ConnectionError,
    HTTPStatusError,
    ProtocolError,
    ServerError,
    StreamError,
    TimeoutError,
    TransportError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Test how exceptions relate to each other."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            TransportError,
            ConnectionError,
            ProtocolError,
            StreamError,
            HTTPStatusError,
            TimeoutError,
            CancellationError,
            ServerError,
            ValidationError,
        ],
    )
    def test_inherits_base(self, exc_class):
        """Every error is a ClickHouseClientError."""
        assert issubclass(exc_class, ClickHouseClientError)
        assert issubclass(exc_class, Exception)

    @pytest.mark.parametrize("exc_class", [ConnectionError, ProtocolError, StreamError, HTTPStatusError])
    def test_transport_family(self, exc_class):
        """Exchange failures are transport errors."""
        assert issubclass(exc_class, TransportError)

    @pytest.mark.parametrize("exc_class", [TimeoutError, CancellationError, ServerError, ValidationError])
    def test_not_transport_errors(self, exc_class):
        """Timeouts, aborts, server and validation errors stand apart."""
        assert not issubclass(exc_class, TransportError)

    def test_names_do_not_shadow_builtins_in_hierarchy(self):
        """Library errors do not derive from the builtins of the same name."""
        import builtins

        assert not issubclass(ConnectionError, builtins.ConnectionError)
        assert not issubclass(TimeoutError, builtins.TimeoutError)


class TestExceptionMessages:
    """Test exception messages and attributes."""

    def test_base_error(self):
        """Test base error keeps message and cause."""
        cause = ValueError("inner")
        error = ClickHouseClientError("Something failed", cause=cause)
        assert str(error) == "Something failed"
        assert error.message == "Something failed"
        assert error.cause is cause

    def test_prefixed_messages(self):
        """Test transport errors prefix their messages."""
        assert str(TransportError("boom")) == "Transport error: boom"
        assert str(ConnectionError("refused")) == "Transport error: Connection error: refused"
        assert str(ProtocolError("bad")) == "Transport error: Protocol error: bad"
        assert str(StreamError("cut")) == "Transport error: Stream error: cut"

    def test_http_status_error(self):
        """Test HTTPStatusError keeps status and body verbatim."""
        error = HTTPStatusError(503, "Service Unavailable")
        assert error.status_code == 503
        assert error.body == "Service Unavailable"
        assert "503" in str(error)
        assert "Service Unavailable" in str(error)

    def test_timeout_error(self):
        """Test TimeoutError mentions its timeout."""
        error = TimeoutError("Socket was idle for too long", 30.0)
        assert error.timeout == 30.0
        assert str(error) == "Timeout error: Socket was idle for too long (timeout: 30.0s)"

    def test_timeout_error_without_timeout(self):
        """Test TimeoutError without a timeout value."""
        error = TimeoutError("Took too long")
        assert error.timeout is None
        assert str(error) == "Timeout error: Took too long"

    def test_cancellation_error_default_message(self):
        """Test CancellationError default message."""
        assert str(CancellationError()) == "The request was aborted."

    def test_server_error(self):
        """Test ServerError attributes."""
        error = ServerError("Table default.t does not exist.", code=60, type="UNKNOWN_TABLE", status_code=404)
        assert str(error) == "Table default.t does not exist."
        assert error.code == 60
        assert error.type == "UNKNOWN_TABLE"
        assert error.status_code == 404

    def test_errors_can_be_raised_and_caught_as_base(self):
        """Test catching specific errors as the base class."""
        with pytest.raises(ClickHouseClientError):
            raise ProtocolError("Unexpected encoding: br")
