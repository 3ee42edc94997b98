"""Plain-text pages, the synthetic product endpoint and fallbacks."""

from todomux.models import Product
from todomux.responses import error_response, json_response, text_response
from todomux.rsgi import HTTPProtocol, HTTPScope
from todomux.tree import path_params


async def home(s: HTTPScope, p: HTTPProtocol) -> None:
    text_response(p, 200, "Hello todomux!")


async def public_info(s: HTTPScope, p: HTTPProtocol) -> None:
    text_response(p, 200, "Public information")


async def private_data(s: HTTPScope, p: HTTPProtocol) -> None:
    text_response(p, 200, "Private data accessible after authentication")


async def private_create(s: HTTPScope, p: HTTPProtocol) -> None:
    text_response(p, 200, "Create a new resource")


async def get_product(s: HTTPScope, p: HTTPProtocol) -> None:
    product = Product(id=path_params.get()["id"])
    json_response(p, 200, product.to_dict())


async def not_found(_scope: HTTPScope, proto: HTTPProtocol) -> None:
    error_response(proto, 404, "Not found")
