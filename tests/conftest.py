import json
import sqlite3
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import pytest

from todomux.app import build_router
from todomux.config import Settings
from todomux.router import Router
from todomux.rsgi import HTTPScope
from todomux.store import connect

API_KEY = "test-key"


@dataclass
class MockHTTPScope:
    proto: Literal["http"] = "http"
    http_version: Literal["1", "1.1", "2"] = "1.1"
    rsgi_version: str = "1.0"
    server: str = "localhost"
    client: str = "127.0.0.1"
    scheme: str = "http"
    method: str = "GET"
    path: str = "/"
    query_string: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    authority: str | None = None


class MockHTTPStreamTransport:
    """Mock stream transport that captures sent data."""

    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    async def send_bytes(self, data: bytes) -> None:
        self.chunks.append(data)

    async def send_str(self, data: str) -> None:
        self.chunks.append(data.encode("utf-8"))


class MockHTTPProtocol:
    """Mock protocol that serves a request body and captures response data."""

    def __init__(self, body: bytes = b"") -> None:
        self.body = body
        self.responses = 0
        self.response_status: int | None = None
        self.response_headers: list[tuple[str, str]] | None = None
        self.response_body: bytes | None = None
        self.stream_transport: MockHTTPStreamTransport | None = None

    async def __call__(self) -> bytes:
        return self.body

    def __aiter__(self) -> bytes:
        raise NotImplementedError

    async def client_disconnect(self) -> None:
        raise NotImplementedError

    def response_empty(self, status: int, headers: list[tuple[str, str]]) -> None:
        self._respond(status, headers, b"")

    def response_str(
        self, status: int, headers: list[tuple[str, str]], body: str
    ) -> None:
        self._respond(status, headers, body.encode("utf-8"))

    def response_bytes(
        self, status: int, headers: list[tuple[str, str]], body: bytes
    ) -> None:
        self._respond(status, headers, body)

    def response_file(
        self, status: int, headers: list[tuple[str, str]], file: str
    ) -> None:
        raise NotImplementedError

    def response_stream(
        self, status: int, headers: list[tuple[str, str]]
    ) -> MockHTTPStreamTransport:
        self.responses += 1
        self.response_status = status
        self.response_headers = headers
        self.stream_transport = MockHTTPStreamTransport()
        return self.stream_transport

    def _respond(
        self, status: int, headers: list[tuple[str, str]], body: bytes
    ) -> None:
        self.responses += 1
        self.response_status = status
        self.response_headers = headers
        self.response_body = body

    def json(self) -> Any:
        assert self.response_body is not None
        return json.loads(self.response_body)

    def text(self) -> str:
        assert self.response_body is not None
        return self.response_body.decode("utf-8")


def mock_scope(
    path: str = "/",
    method: str = "GET",
    headers: dict[str, str] | None = None,
    query_string: str = "",
    client: str = "127.0.0.1",
) -> HTTPScope:
    return MockHTTPScope(
        path=path,
        method=method,
        headers=headers or {},
        query_string=query_string,
        client=client,
    )


async def send(
    router: Router,
    method: str,
    path: str,
    *,
    json_body: Any = None,
    body: bytes = b"",
    headers: dict[str, str] | None = None,
    query_string: str = "",
) -> MockHTTPProtocol:
    """Drive one request through a finalized router and return the response."""
    headers = dict(headers or {})
    if json_body is not None:
        body = json.dumps(json_body).encode()
        headers.setdefault("content-type", "application/json")
    proto = MockHTTPProtocol(body)
    await router.__rsgi__(
        mock_scope(path, method, headers=headers, query_string=query_string), proto
    )
    return proto


@pytest.fixture
def db() -> Iterator[sqlite3.Connection]:
    conn = connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def app(db: sqlite3.Connection) -> Router:
    router = build_router(db, Settings(api_key=API_KEY))
    router.finalize()
    return router
