"""Error boundary middleware.

Resolves the error taxonomy of ``todomux.errors`` to JSON responses and turns
any other exception into a generic 500, so nothing escapes the pipeline.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from todomux.errors import HTTPError
from todomux.middleware._recorder import RecordingHTTPProtocol
from todomux.responses import error_response

if TYPE_CHECKING:
    from todomux.rsgi import HTTPProtocol, HTTPScope, Middleware, RSGIHTTPHandler

logger = logging.getLogger("todomux.recovery")


def recovery() -> Middleware:
    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def recovering_handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
            recorder = RecordingHTTPProtocol(proto)
            try:
                await handler(scope, recorder)
            except HTTPError as e:
                if recorder.status is not None:
                    logger.warning(
                        "%s %s: %s raised after response started",
                        scope.method,
                        scope.path,
                        type(e).__name__,
                    )
                    return
                error_response(proto, e.status, e.message)
            except Exception:
                logger.exception("unhandled error in %s %s", scope.method, scope.path)
                if recorder.status is None:
                    error_response(proto, 500, "Internal Server Error")

        return recovering_handler

    return middleware
