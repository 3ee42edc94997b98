"""Todo handlers.

Id-addressed handlers resolve the record before doing anything else, so an
unknown or soft-deleted id is always a 404 regardless of the request body.
"""

from dataclasses import replace

from todomux.binding import bind_json
from todomux.errors import NotFoundError
from todomux.models import TODO_FIELDS, Todo
from todomux.responses import json_response
from todomux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler
from todomux.store import Gateway
from todomux.tree import path_params

_MAX_ID = 2**63 - 1  # SQLite INTEGER


def _todo_id() -> int:
    raw = path_params.get()["id"]
    if not (raw.isascii() and raw.isdigit()) or int(raw) > _MAX_ID:
        raise NotFoundError("Todo not found")
    return int(raw)


def create_todo(todos: Gateway[Todo]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        todo = todos.create(Todo(**await bind_json(p, TODO_FIELDS)))
        json_response(p, 200, todo.to_dict())

    return handler


def list_todos(todos: Gateway[Todo]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        json_response(p, 200, [todo.to_dict() for todo in todos.find_all()])

    return handler


def get_todo(todos: Gateway[Todo]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        todo = todos.find_by_id(_todo_id())
        json_response(p, 200, todo.to_dict())

    return handler


def update_todo(todos: Gateway[Todo]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        todo = todos.find_by_id(_todo_id())
        changes = await bind_json(p, TODO_FIELDS)
        todo = todos.save(replace(todo, **changes))
        json_response(p, 200, todo.to_dict())

    return handler


def delete_todo(todos: Gateway[Todo]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        todo = todos.find_by_id(_todo_id())
        todos.soft_delete(todo)
        raw_id = path_params.get()["id"]
        json_response(p, 200, {"message": f"Todo with ID {raw_id} deleted"})

    return handler
