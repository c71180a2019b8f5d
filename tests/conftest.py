"""
Pytest configuration for ch_http_core tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import pytest
from typing import Any, List, Optional

from ch_http_core import Client, ClientConfig
from ch_http_core.network.mock import MockNetworkBackend, RecordedRequest, build_response


def ok_handler(request: RecordedRequest) -> Optional[bytes]:
    """Answer every request with 200 Ok."""
    return build_response(200, b"Ok.\n")


def never_reply(request: RecordedRequest) -> Optional[bytes]:
    """Receive the request and never answer it."""
    return None


class ListStream:
    """Async stream over a fixed list of chunks."""

    def __init__(self, chunks: List[bytes]) -> None:
        self.chunks = list(chunks)
        self.closed = False

    def __aiter__(self) -> "ListStream":
        return self

    async def __anext__(self) -> bytes:
        if not self.chunks:
            raise StopAsyncIteration
        return self.chunks.pop(0)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def backend():
    """Mock backend answering every request with 200 Ok."""
    return MockNetworkBackend(handler=ok_handler)


@pytest.fixture
def silent_backend():
    """Mock backend that never answers."""
    return MockNetworkBackend(handler=never_reply)


@pytest.fixture
def make_config():
    """Create client configurations."""
    def _create_config(**kwargs: Any) -> ClientConfig:
        return ClientConfig(**kwargs)
    return _create_config


@pytest.fixture
def make_client(backend):
    """Create clients bound to the mock backend."""
    def _create_client(**kwargs: Any) -> Client:
        return Client(ClientConfig(**kwargs), backend=backend)
    return _create_client


@pytest.fixture
def list_stream():
    """Create an async stream over fixed chunks."""
    def _create_stream(chunks: List[bytes]) -> ListStream:
        return ListStream(chunks)
    return _create_stream


@pytest.fixture
def async_data_generator():
    """Create an async data generator for testing."""
    async def generator(data: List[Any]):
        for chunk in data:
            yield chunk

    return generator


@pytest.fixture
def server_error_body():
    """Error envelope as the server sends it."""
    return (
        "Code: 62. DB::Exception: Syntax error: failed at position 1 ('SELEC'): SELEC 1. "
        "Expected one of: Query, SELECT query. (SYNTAX_ERROR) (version 23.8.1.2992 (official build))\n"
    )
