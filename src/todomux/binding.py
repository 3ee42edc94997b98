"""Request binding.

Turns query strings and JSON, urlencoded or multipart bodies into plain field
maps for a declared set of fields. Every parse failure surfaces as
``ValidationError`` so handlers never see a parser's own exception types.

Field semantics follow a zero-value model: a field absent from the payload (or
``null`` in JSON) binds to ``""`` for ``str`` and ``0`` for ``int``; unknown
payload keys are ignored; a present value of the wrong type fails the bind.
"""

import io
import json
from collections.abc import Mapping
from urllib.parse import parse_qs

from python_multipart import parse_form
from python_multipart.exceptions import FormParserError
from python_multipart.multipart import Field, File

from todomux.errors import ValidationError
from todomux.rsgi import HTTPProtocol, HTTPScope

INVALID_JSON = "Invalid JSON data"
INVALID_FORM = "Invalid form data"

type Fields = Mapping[str, type[str] | type[int]]

_ZERO: dict[type, str | int] = {str: "", int: 0}


def query_param(scope: HTTPScope, name: str, default: str = "") -> str:
    """First value of a query string parameter, or default."""
    values = parse_qs(scope.query_string, keep_blank_values=True).get(name)
    return values[0] if values else default


async def bind(scope: HTTPScope, proto: HTTPProtocol, fields: Fields) -> dict:
    """Bind the request body according to its Content-Type."""
    content_type = scope.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == "application/json":
        return await bind_json(proto, fields)
    if media_type == "multipart/form-data":
        return await bind_multipart(proto, content_type, fields)
    return await bind_form(scope, proto, fields)


async def bind_json(proto: HTTPProtocol, fields: Fields) -> dict:
    body = await proto()
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(INVALID_JSON) from e
    if not isinstance(payload, dict):
        raise ValidationError(INVALID_JSON)

    bound: dict[str, str | int] = {}
    for name, kind in fields.items():
        value = payload.get(name)
        if value is None:
            bound[name] = _ZERO[kind]
        elif kind is int and _is_uint(value):
            bound[name] = value
        elif kind is str and isinstance(value, str) and _is_utf8(value):
            bound[name] = value
        else:
            raise ValidationError(INVALID_JSON)
    return bound


async def bind_form(scope: HTTPScope, proto: HTTPProtocol, fields: Fields) -> dict:
    """Bind an urlencoded body; query string values fill in absent fields."""
    body = await proto()
    try:
        values = parse_qs(body.decode(), keep_blank_values=True, strict_parsing=False)
    except UnicodeDecodeError as e:
        raise ValidationError(INVALID_FORM) from e
    for name, query_values in parse_qs(
        scope.query_string, keep_blank_values=True
    ).items():
        values.setdefault(name, query_values)
    return _coerce(values, fields)


async def bind_multipart(
    proto: HTTPProtocol, content_type: str, fields: Fields
) -> dict:
    """Bind the plain parts of a multipart body. File parts are discarded."""
    body = await proto()
    values: dict[str, list[str]] = {}

    def on_field(field: Field) -> None:
        name = field.field_name.decode()
        values.setdefault(name, []).append((field.value or b"").decode())

    def on_file(file: File) -> None:
        file.close()

    try:
        parse_form({"Content-Type": content_type}, io.BytesIO(body), on_field, on_file)
    except (FormParserError, UnicodeDecodeError) as e:
        raise ValidationError(INVALID_FORM) from e
    return _coerce(values, fields)


def _coerce(values: Mapping[str, list[str]], fields: Fields) -> dict:
    bound: dict[str, str | int] = {}
    for name, kind in fields.items():
        raw = values.get(name, [""])[0]
        if kind is str:
            bound[name] = raw
        elif raw == "":
            bound[name] = 0
        elif raw.isascii() and raw.isdigit():
            bound[name] = int(raw)
        else:
            raise ValidationError(INVALID_FORM)
    return bound


def _is_uint(value: object) -> bool:
    # bool is an int subclass but never a valid identifier
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_utf8(value: str) -> bool:
    # json.loads lets lone surrogates through; they cannot be stored
    try:
        value.encode()
    except UnicodeEncodeError:
        return False
    return True
