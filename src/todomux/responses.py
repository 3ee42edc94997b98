import json
from typing import Any

from todomux.rsgi import HTTPProtocol

JSON_HEADERS = [("content-type", "application/json; charset=utf-8")]
TEXT_HEADERS = [("content-type", "text/plain; charset=utf-8")]


def json_response(proto: HTTPProtocol, status: int, payload: Any) -> None:
    proto.response_str(status, JSON_HEADERS, json.dumps(payload))


def text_response(proto: HTTPProtocol, status: int, body: str) -> None:
    proto.response_str(status, TEXT_HEADERS, body)


def error_response(proto: HTTPProtocol, status: int, message: str) -> None:
    json_response(proto, status, {"error": message})
