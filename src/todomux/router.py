"""HTTP router/multiplexer implementation.

Inspired by go-chi/mux's Mux and gin's route groups
"""

from __future__ import annotations

import asyncio
import logging

from todomux.rsgi import HTTPProtocol, HTTPScope, Middleware, RSGIHTTPHandler
from todomux.tree import (
    LeafKey,
    Node,
    add_route,
    finalize_tree,
    find_handler,
    http_route,
    mount_tree,
    path_params,
)

logger = logging.getLogger(__name__)


class Router:
    __slots__ = ("_finalized", "_tree")
    _tree: Node[RSGIHTTPHandler]
    _finalized: bool

    def __init__(
        self,
        *,
        not_found_handler: RSGIHTTPHandler | None = None,
        method_not_allowed_handler: RSGIHTTPHandler | None = None,
    ) -> None:
        self._tree = Node(
            not_found_handler=not_found_handler,
            method_not_allowed_handler=method_not_allowed_handler,
        )
        self._finalized = False

    def __rsgi_init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.finalize()

    async def __rsgi__(self, scope: HTTPScope, proto: HTTPProtocol) -> None:
        if scope.proto != "http":
            logger.warning("unsupported protocol %r", scope.proto)
            return
        handler, params, route = self._handler(scope.method, scope.path)
        with path_params.set(params), http_route.set(route):
            await handler(scope, proto)

    __call__ = __rsgi__

    def finalize(self) -> None:
        """Finalize the router tree.

        Cascades not_found_handler and method_not_allowed_handler down through
        the routing tree and composes every route's middleware into a single
        handler. Idempotent - safe to call multiple times.

        This is called automatically by granian's ``__rsgi_init__`` hook, but
        should be called manually when the router is driven directly.
        """
        if self._finalized:
            return
        if self._tree.not_found_handler is None:
            msg = "Router does not have not_found_handler"
            raise ValueError(msg)
        if self._tree.method_not_allowed_handler is None:
            msg = "Router does not have method_not_allowed_handler"
            raise ValueError(msg)
        self._tree = finalize_tree(
            self._tree,
            self._tree.not_found_handler,
            self._tree.method_not_allowed_handler,
            (),
        )
        self._finalized = True

    def _handler(
        self, method: str, path: str
    ) -> tuple[RSGIHTTPHandler, dict[str, str], str]:
        """Returns the handler to use for the request."""
        if not self._finalized:
            msg = "Router must be finalized before handling requests"
            raise RuntimeError(msg)
        try:
            key = LeafKey(method.upper())
        except ValueError:
            # the tree only knows standard verbs
            return self._tree.method_not_allowed_handler, {}, ""  # ty: ignore[invalid-return-type]
        return find_handler(path, key, self._tree)

    def _check_mutable(self) -> None:
        if self._finalized:
            msg = "Router is finalized, routes can no longer be added"
            raise RuntimeError(msg)

    def method(
        self,
        method: str,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for method, with optional middleware."""
        self._check_mutable()
        self._tree = add_route(
            self._tree, LeafKey(method.upper()), path, handler, middleware
        )

    def delete(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for DELETE, with optional middleware."""
        self.method("DELETE", path, handler, middleware)

    def get(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for GET, with optional middleware."""
        self.method("GET", path, handler, middleware)

    def head(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for HEAD, with optional middleware."""
        self.method("HEAD", path, handler, middleware)

    def options(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for OPTIONS, with optional middleware."""
        self.method("OPTIONS", path, handler, middleware)

    def patch(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for PATCH, with optional middleware."""
        self.method("PATCH", path, handler, middleware)

    def post(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for POST, with optional middleware."""
        self.method("POST", path, handler, middleware)

    def put(
        self,
        path: str,
        handler: RSGIHTTPHandler,
        middleware: tuple[Middleware, ...] = (),
    ) -> None:
        """Registers handler in tree at path for PUT, with optional middleware."""
        self.method("PUT", path, handler, middleware)

    def not_found(self, handler: RSGIHTTPHandler) -> None:
        """Registers handler for paths that can't be found."""
        if self._tree.not_found_handler is not None:
            msg = "not found handler is already set"
            raise ValueError(msg)
        self._tree = self._tree.update(not_found_handler=handler)

    def method_not_allowed(self, handler: RSGIHTTPHandler) -> None:
        """Registers handler for paths where the method is unresolved."""
        if self._tree.method_not_allowed_handler is not None:
            msg = "method not allowed handler is already set"
            raise ValueError(msg)
        self._tree = self._tree.update(method_not_allowed_handler=handler)

    def use(self, *middleware: Middleware) -> None:
        """Adds middleware to tree. The first middleware added runs outermost."""
        self._check_mutable()
        self._tree = self._tree.update(middleware=self._tree.middleware + middleware)

    def mount(self, path: str, router: Router) -> None:
        """Merges in another router at path as a route group.

        Middleware added to the mounted router with ``use`` only applies to
        its own routes, inside this router's middleware.
        """
        self._check_mutable()
        if path.endswith("/") and path != "/":
            msg = "mount path cannot end in /"
            raise ValueError(msg)
        self._tree = mount_tree(path, self._tree, router._tree)
