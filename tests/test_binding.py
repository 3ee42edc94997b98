import pytest
from conftest import MockHTTPProtocol, mock_scope

from todomux.binding import bind, bind_form, bind_json, query_param
from todomux.errors import ValidationError
from todomux.models import TODO_FIELDS, USER_FIELDS


def test_query_param() -> None:
    scope = mock_scope("/search", query_string="q=jo%20hn&q=other&empty=")
    assert query_param(scope, "q") == "jo hn"
    assert query_param(scope, "empty") == ""
    assert query_param(scope, "missing") == ""
    assert query_param(scope, "missing", "fallback") == "fallback"


@pytest.mark.parametrize(
    "body,expected",
    [
        (
            b'{"id": 1, "name": "A", "email": "a@x"}',
            {"id": 1, "name": "A", "email": "a@x"},
        ),
        (b"{}", {"id": 0, "name": "", "email": ""}),
        (b'{"name": null, "extra": [1, 2]}', {"id": 0, "name": "", "email": ""}),
    ],
)
@pytest.mark.asyncio
async def test_bind_json(body: bytes, expected: dict) -> None:
    assert await bind_json(MockHTTPProtocol(body), USER_FIELDS) == expected


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"not json",
        b'{"title": "A"',
        b'["title"]',
        b"null",
        b'{"title": 5}',
        b'{"id": "1"}',
        b'{"id": -1}',
        b'{"id": true}',
        b'{"id": 1.5}',
        b'{"title": "\xff"}',
    ],
)
@pytest.mark.asyncio
async def test_bind_json_invalid(body: bytes) -> None:
    fields = TODO_FIELDS | {"id": int}
    with pytest.raises(ValidationError, match="Invalid JSON data"):
        await bind_json(MockHTTPProtocol(body), fields)


@pytest.mark.asyncio
async def test_bind_form() -> None:
    scope = mock_scope("/form", "POST")
    proto = MockHTTPProtocol(b"id=3&name=Ann+Lee&email=ann%40x")
    assert await bind_form(scope, proto, USER_FIELDS) == {
        "id": 3,
        "name": "Ann Lee",
        "email": "ann@x",
    }


@pytest.mark.asyncio
async def test_bind_form_query_fills_gaps() -> None:
    scope = mock_scope("/form", "POST", query_string="name=Query&email=q@x")
    proto = MockHTTPProtocol(b"name=Body")
    assert await bind_form(scope, proto, USER_FIELDS) == {
        "id": 0,
        "name": "Body",
        "email": "q@x",
    }


@pytest.mark.parametrize("body", [b"id=abc", b"id=-1", b"id=\xd9\xa3", b"name=\xff"])
@pytest.mark.asyncio
async def test_bind_form_invalid(body: bytes) -> None:
    with pytest.raises(ValidationError, match="Invalid form data"):
        await bind_form(mock_scope("/form", "POST"), MockHTTPProtocol(body), USER_FIELDS)


@pytest.mark.asyncio
async def test_bind_dispatches_on_content_type() -> None:
    json_scope = mock_scope(
        "/form", "POST", headers={"content-type": "application/json; charset=utf-8"}
    )
    bound = await bind(json_scope, MockHTTPProtocol(b'{"name": "J"}'), USER_FIELDS)
    assert bound["name"] == "J"

    form_scope = mock_scope(
        "/form", "POST", headers={"content-type": "application/x-www-form-urlencoded"}
    )
    bound = await bind(form_scope, MockHTTPProtocol(b"name=F"), USER_FIELDS)
    assert bound["name"] == "F"

    bare_scope = mock_scope("/form", "POST", query_string="name=Q")
    bound = await bind(bare_scope, MockHTTPProtocol(), USER_FIELDS)
    assert bound["name"] == "Q"


def _multipart(*parts: bytes) -> bytes:
    return b"".join(b"--XX\r\n" + part + b"\r\n" for part in parts) + b"--XX--\r\n"


MULTIPART_USER = _multipart(
    b'Content-Disposition: form-data; name="name"\r\n\r\nJohn',
    b'Content-Disposition: form-data; name="email"\r\n\r\nj@x',
    b'Content-Disposition: form-data; name="id"\r\n\r\n7',
    b'Content-Disposition: form-data; name="avatar"; filename="a.png"\r\n'
    b"Content-Type: image/png\r\n\r\n\x89PNG",
)


@pytest.mark.asyncio
async def test_bind_multipart() -> None:
    scope = mock_scope(
        "/form", "POST", headers={"content-type": "multipart/form-data; boundary=XX"}
    )
    assert await bind(scope, MockHTTPProtocol(MULTIPART_USER), USER_FIELDS) == {
        "id": 7,
        "name": "John",
        "email": "j@x",
    }


@pytest.mark.parametrize(
    "content_type,body",
    [
        ("multipart/form-data", MULTIPART_USER),
        (
            "multipart/form-data; boundary=XX",
            _multipart(b'Content-Disposition: form-data; name="id"\r\n\r\nabc'),
        ),
        (
            "multipart/form-data; boundary=XX",
            _multipart(b'Content-Disposition: form-data; name="name"\r\n\r\n\xff'),
        ),
    ],
)
@pytest.mark.asyncio
async def test_bind_multipart_invalid(content_type: str, body: bytes) -> None:
    scope = mock_scope("/form", "POST", headers={"content-type": content_type})
    with pytest.raises(ValidationError, match="Invalid form data"):
        await bind(scope, MockHTTPProtocol(body), USER_FIELDS)


@pytest.mark.asyncio
async def test_bind_json_rejects_lone_surrogate() -> None:
    with pytest.raises(ValidationError, match="Invalid JSON data"):
        await bind_json(MockHTTPProtocol(b'{"title": "\\ud800"}'), TODO_FIELDS)
