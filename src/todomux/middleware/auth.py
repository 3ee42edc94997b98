"""Shared-secret header authentication."""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from todomux.errors import AuthError
from todomux.responses import error_response

if TYPE_CHECKING:
    from todomux.rsgi import HTTPProtocol, HTTPScope, Middleware, RSGIHTTPHandler


def api_key(expected: str, *, header: str = "x-api-key") -> Middleware:
    """Create an auth gate middleware.

    Requests whose ``header`` is absent or differs from ``expected`` are
    answered with ``401 {"error": "Unauthorized"}`` and never reach the
    wrapped handler.

    Example:
        private = Router()
        private.use(api_key(settings.api_key))
        router.mount("/private", private)
    """
    if not expected:
        msg = "expected api key must not be empty"
        raise ValueError(msg)
    header = header.lower()
    expected_bytes = expected.encode()

    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def authenticated_handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
            provided = scope.headers.get(header)
            if provided is None or not hmac.compare_digest(
                provided.encode(), expected_bytes
            ):
                error_response(proto, AuthError.status, "Unauthorized")
                return
            await handler(scope, proto)

        return authenticated_handler

    return middleware
