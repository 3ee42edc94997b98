"""User handlers: echo binding, search, create and list."""

from todomux.binding import bind, bind_json, query_param
from todomux.errors import StoreError, ValidationError
from todomux.models import USER_FIELDS, User
from todomux.responses import json_response
from todomux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler
from todomux.store import Gateway, like_pattern


async def echo_json(s: HTTPScope, p: HTTPProtocol) -> None:
    """Bind a User from a JSON body and echo it back unchanged."""
    user = User(**await bind_json(p, USER_FIELDS))
    json_response(p, 200, user.to_dict())


async def echo_form(s: HTTPScope, p: HTTPProtocol) -> None:
    """Bind a User from a form (or JSON, per Content-Type) and echo it back."""
    user = User(**await bind(s, p, USER_FIELDS))
    json_response(p, 200, user.to_dict())


# closures over handlers to inject the store
def search_users(users: Gateway[User]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        query = query_param(s, "q")
        if query == "":
            raise ValidationError("Search parameter 'q' is required!")
        try:
            found = users.find_all("name LIKE ? ESCAPE '\\'", (like_pattern(query),))
        except StoreError as e:
            raise StoreError("Failed to search users") from e
        json_response(p, 200, [user.to_dict() for user in found])

    return handler


def create_user(users: Gateway[User]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        fields = await bind_json(p, USER_FIELDS)
        fields.pop("id")  # assigned by the store
        user = users.create(User(**fields))
        json_response(p, 200, user.to_dict())

    return handler


def list_users(users: Gateway[User]) -> RSGIHTTPHandler:
    async def handler(s: HTTPScope, p: HTTPProtocol) -> None:
        json_response(p, 200, [user.to_dict() for user in users.find_all()])

    return handler
