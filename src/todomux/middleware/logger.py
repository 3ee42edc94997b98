"""Request logging middleware."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from todomux.middleware._recorder import RecordingHTTPProtocol

if TYPE_CHECKING:
    from todomux.rsgi import HTTPProtocol, HTTPScope, Middleware, RSGIHTTPHandler

access_logger = logging.getLogger("todomux.access")


def logger(*, log: logging.Logger = access_logger, level: int = logging.INFO) -> Middleware:
    """Create request logging middleware.

    Logs one line per request once the wrapped handler has finished:

        Request-Method: GET | Status: 200 | Duration: 0.412ms

    The line is written even when the handler aborts or raises. A handler that
    raises before responding is logged with status 500 and the exception is
    re-raised.

    Example:
        router.use(logger(), recovery())
    """

    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def logged_handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
            recorder = RecordingHTTPProtocol(proto)
            start = time.perf_counter()
            try:
                await handler(scope, recorder)
            finally:
                duration = time.perf_counter() - start
                log.log(
                    level,
                    "Request-Method: %s | Status: %d | Duration: %s",
                    scope.method,
                    recorder.status if recorder.status is not None else 500,
                    _format_duration(duration),
                )

        return logged_handler

    return middleware


def _format_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:.3f}s"
    if seconds >= 0.001:
        return f"{seconds * 1_000:.3f}ms"
    return f"{seconds * 1_000_000:.3f}µs"
