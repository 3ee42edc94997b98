"""Integration test: the application behind a real granian server."""

from __future__ import annotations

import asyncio
import socket
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest
from conftest import API_KEY
from granian.server.embed import Server

from todomux.app import build_router
from todomux.config import Settings
from todomux.router import Router


def _get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@asynccontextmanager
async def run_server(router: Router) -> AsyncIterator[int]:
    """Start a granian embedded server, yield the port, then clean up."""
    port = _get_free_port()
    server = Server(router, address="127.0.0.1", port=port)
    task = asyncio.create_task(server.serve())

    # Wait for TCP readiness
    for _ in range(100):
        try:
            _, w = await asyncio.open_connection("127.0.0.1", port)
            w.close()
            await w.wait_closed()
            break
        except (ConnectionRefusedError, OSError):
            await asyncio.sleep(0.1)
    else:
        task.cancel()
        pytest.fail("Server did not start within 10s")

    try:
        yield port
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


@pytest.mark.asyncio
async def test_todo_scenario_over_http(db: sqlite3.Connection) -> None:
    router = build_router(db, Settings(api_key=API_KEY))
    router.finalize()

    async with (
        run_server(router) as port,
        httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client,
    ):
        response = await client.post("/todos", json={"title": "A", "description": "x"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        todo = response.json()

        response = await client.get("/todos")
        assert [t["id"] for t in response.json()] == [todo["id"]]

        response = await client.put(
            f"/todos/{todo['id']}", json={"title": "B", "description": "y"}
        )
        assert response.json()["title"] == "B"

        response = await client.delete(f"/todos/{todo['id']}")
        assert response.json() == {"message": f"Todo with ID {todo['id']} deleted"}

        response = await client.get(f"/todos/{todo['id']}")
        assert response.status_code == 404
        assert response.json() == {"error": "Todo not found"}


@pytest.mark.asyncio
async def test_pages_and_auth_over_http(db: sqlite3.Connection) -> None:
    router = build_router(db, Settings(api_key=API_KEY))
    router.finalize()

    async with (
        run_server(router) as port,
        httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}") as client,
    ):
        response = await client.get("/")
        assert response.text == "Hello todomux!"

        response = await client.post("/form", data={"name": "Ann", "email": "a@x"})
        assert response.json() == {"id": 0, "name": "Ann", "email": "a@x"}

        response = await client.get("/search", params={"q": "ann"})
        assert response.json() == []

        response = await client.get("/private/data")
        assert response.status_code == 401

        response = await client.get("/private/data", headers={"X-API-Key": API_KEY})
        assert response.status_code == 200
        assert response.text == "Private data accessible after authentication"

        response = await client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}
