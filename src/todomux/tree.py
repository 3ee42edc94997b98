"""Routing tree implementation with path param support.

Segment trie in the spirit of go 1.22+ net/http's routingNode, using gin-style
patterns: ``/todos/:id`` for a named segment, ``/static/*path`` for the rest
of the path.
"""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache, reduce
from typing import Never

path_params: ContextVar[dict[str, str]] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")

type Middleware[T] = Callable[[T], T]


class LeafKey(Enum):
    """Valid keys for leaf nodes: the HTTP methods of RFC 9110 and RFC 5789."""

    CONNECT = "CONNECT"
    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"
    TRACE = "TRACE"

    def __repr__(self) -> str:
        return str(self.value)


class FrozenDict[K, V](dict[K, V]):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._hash: int | None = None

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self.items()))
        return self._hash

    def _immutable(self, *args, **kwargs) -> Never:
        msg = "FrozenDict is immutable"
        raise TypeError(msg)

    __setitem__ = __delitem__ = clear = pop = popitem = setdefault = update = _immutable


@dataclass(slots=True, frozen=True)
class Node[T]:
    """Segment-based trie node"""

    handler: T | None = field(default=None)
    middleware: tuple[Middleware[T], ...] = field(default=())
    children: FrozenDict[str | LeafKey, Node[T]] = field(default_factory=FrozenDict)
    param: ParamNode[T] | None = field(default=None)
    catchall: CatchAllNode[T] | None = field(default=None)
    not_found_handler: T | None = None
    method_not_allowed_handler: T | None = None

    def update(
        self,
        handler: T | None = None,
        middleware: tuple[Middleware[T], ...] | None = None,
        children: FrozenDict[str | LeafKey, Node[T]] | None = None,
        param: ParamNode[T] | None = None,
        catchall: CatchAllNode[T] | None = None,
        not_found_handler: T | None = None,
        method_not_allowed_handler: T | None = None,
    ) -> Node[T]:
        return Node(
            handler=handler if handler is not None else self.handler,
            middleware=middleware if middleware is not None else self.middleware,
            children=children if children is not None else self.children,
            param=param if param is not None else self.param,
            catchall=catchall if catchall is not None else self.catchall,
            not_found_handler=not_found_handler
            if not_found_handler is not None
            else self.not_found_handler,
            method_not_allowed_handler=method_not_allowed_handler
            if method_not_allowed_handler is not None
            else self.method_not_allowed_handler,
        )


@dataclass(slots=True, frozen=True)
class ParamNode[T]:
    name: str
    child: Node[T]


@dataclass(slots=True, frozen=True)
class CatchAllNode[T]:
    name: str
    child: Node[T]


def compose[T](handler: T, middleware: tuple[Middleware[T], ...]) -> T:
    """Wrap handler in middleware, first middleware outermost."""
    return reduce(lambda h, m: m(h), reversed(middleware), handler)


@lru_cache(maxsize=1024)
def find_handler[T](
    path: str,
    method: LeafKey,
    tree: Node[T],
) -> tuple[T, dict[str, str], str]:
    """Traverses a finalized tree to find the best match handler.

    Each path segment priority is: exact match > param match > catchall match.
    A param only matches a non-empty segment.
    If no matching node is found for the path, return not found handler
    If matching node for path does not support method, return method not allowed handler

    Returns (handler, params, route_pattern) where route_pattern is the matched
    route (e.g. "/todos/:id") or "" for error handlers.
    """
    segments = path[1:].split("/")  # assumes leading "/"

    current = tree
    params = {}
    route_parts: list[str] = []
    for i, seg in enumerate(segments):
        child = current.children.get(seg)
        if child is not None:  # exact match
            route_parts.append(seg)
            current = child
            continue
        if current.param is not None and seg:  # fallback to param match
            params[current.param.name] = seg
            route_parts.append(":" + current.param.name)
            current = current.param.child
            continue
        if current.catchall is not None:  # fallback to catchall match
            params[current.catchall.name] = "/".join(segments[i:])
            route_parts.append("*" + current.catchall.name)
            current = current.catchall.child
            break
        return _not_found(current), {}, ""

    leaf = current.children.get(method)
    if leaf is None or leaf.handler is None:
        if any(isinstance(k, LeafKey) for k in current.children.keys()):
            if current.method_not_allowed_handler is None:
                msg = "No method not allowed handler set"
                raise ValueError(msg)
            return current.method_not_allowed_handler, params, ""
        return _not_found(current), {}, ""

    return leaf.handler, params, "/" + "/".join(route_parts)


def _not_found[T](node: Node[T]) -> T:
    if node.not_found_handler is None:
        msg = "No not found handler set"
        raise ValueError(msg)
    return node.not_found_handler


def add_route[T](
    tree: Node[T],
    method: LeafKey,
    path: str,
    handler: T,
    middleware: tuple[Middleware[T], ...] = (),
) -> Node[T]:
    """add route to tree for handler on method/path with optional middleware"""
    new_tree = _construct_route_tree(method, path, handler, middleware)
    return _merge_trees(tree, new_tree)


def mount_tree[T](path: str, parent: Node[T], child: Node[T]) -> Node[T]:
    # Child middleware moves onto the child's routes so it stays scoped to them
    if child.middleware:
        child = _cascade_middleware(child, ())
    if path == "/":
        return _merge_trees(parent, child)
    sub_tree = _construct_sub_tree(path, child)
    return _merge_trees(parent, sub_tree)


def _cascade_middleware[T](
    tree: Node[T], middleware: tuple[Middleware[T], ...]
) -> Node[T]:
    """Cascade middleware down through tree, only setting on leaf nodes (with handlers)."""
    if tree.middleware:
        middleware = middleware + tree.middleware

    if tree.handler is not None:
        tree = tree.update(middleware=middleware)
    else:
        tree = tree.update(middleware=())

    if tree.param is not None:
        tree = tree.update(
            param=ParamNode(
                name=tree.param.name,
                child=_cascade_middleware(tree.param.child, middleware),
            )
        )

    if tree.catchall is not None:
        tree = tree.update(
            catchall=CatchAllNode(
                name=tree.catchall.name,
                child=_cascade_middleware(tree.catchall.child, middleware),
            )
        )

    return tree.update(
        children=FrozenDict(
            {
                k: _cascade_middleware(child, middleware)
                for k, child in tree.children.items()
            }
        )
    )


def finalize_tree[T](
    tree: Node[T],
    not_found_handler: T,
    method_not_allowed_handler: T,
    middleware: tuple[Middleware[T], ...],
) -> Node[T]:
    """Cascade error handlers and middleware down through tree.

    Leaf handlers come out composed with every middleware above them, so the
    returned tree carries no middleware. Error handlers declared on a node are
    composed with the middleware in force at that node; nodes without one
    inherit their parent's composed handler.
    """
    if tree.middleware:
        middleware += tree.middleware

    if tree.handler is not None:
        return Node(handler=compose(tree.handler, middleware))

    if tree.not_found_handler is None:
        tree = tree.update(not_found_handler=not_found_handler)
    else:
        not_found_handler = compose(tree.not_found_handler, middleware)

    if tree.method_not_allowed_handler is None:
        tree = tree.update(method_not_allowed_handler=method_not_allowed_handler)
    else:
        method_not_allowed_handler = compose(
            tree.method_not_allowed_handler, middleware
        )

    param = None
    if tree.param is not None:
        param = ParamNode(
            name=tree.param.name,
            child=finalize_tree(
                tree.param.child,
                not_found_handler,
                method_not_allowed_handler,
                middleware,
            ),
        )

    catchall = None
    if tree.catchall is not None:
        catchall = CatchAllNode(
            name=tree.catchall.name,
            child=finalize_tree(
                tree.catchall.child,
                not_found_handler,
                method_not_allowed_handler,
                middleware,
            ),
        )

    return Node(
        children=FrozenDict(
            {
                k: finalize_tree(
                    child,
                    not_found_handler,
                    method_not_allowed_handler,
                    middleware,
                )
                for k, child in tree.children.items()
            }
        ),
        param=param,
        catchall=catchall,
        not_found_handler=not_found_handler,
        method_not_allowed_handler=method_not_allowed_handler,
    )


def _construct_route_tree[T](
    method: LeafKey,
    path: str,
    handler: T,
    middleware: tuple[Middleware[T], ...] = (),
) -> Node[T]:
    """construct tree for handler on method/path with optional middleware"""
    leaf = Node(
        middleware=middleware,
        handler=handler,
    )
    child: Node[T] = Node(
        children=FrozenDict({method: leaf}),
    )
    return _construct_sub_tree(path, child)


def _construct_sub_tree[T](path: str, child: Node[T]) -> Node[T]:
    """construct sub tree for existing node on path"""
    if not path.startswith("/"):
        msg = f"path must start with '/', provided {path=}"
        raise ValueError(msg)
    segments = path[1:].split("/")

    for i, seg in reversed(list(enumerate(segments))):
        if seg.startswith("*"):
            if i != len(segments) - 1:
                msg = f"catchall must be the last segment, provided {path=}"
                raise ValueError(msg)
            child = Node(catchall=CatchAllNode(name=_param_name(seg, path), child=child))
        elif seg.startswith(":"):
            child = Node(param=ParamNode(name=_param_name(seg, path), child=child))
        else:
            child = Node(children=FrozenDict({seg: child}))

    return child


def _param_name(seg: str, path: str) -> str:
    name = seg[1:]
    if not name:
        msg = f"path parameter must be named, provided {path=}"
        raise ValueError(msg)
    return name


def _merge_trees[T](tree1: Node[T], tree2: Node[T]) -> Node[T]:
    """merge tree1 and tree2, error on conflict"""
    if (
        tree1.handler is not None
        and tree2.handler is not None
        and tree1.handler is not tree2.handler
    ):
        msg = "nodes have conflicting handlers"
        raise ValueError(msg)
    handler = tree1.handler or tree2.handler
    if (
        tree1.not_found_handler is not None
        and tree2.not_found_handler is not None
        and tree1.not_found_handler is not tree2.not_found_handler
    ):
        msg = "nodes have conflicting not found handlers"
        raise ValueError(msg)
    not_found_handler = tree1.not_found_handler or tree2.not_found_handler
    if (
        tree1.method_not_allowed_handler is not None
        and tree2.method_not_allowed_handler is not None
        and tree1.method_not_allowed_handler is not tree2.method_not_allowed_handler
    ):
        msg = "nodes have conflicting method not allowed handlers"
        raise ValueError(msg)
    method_not_allowed_handler = (
        tree1.method_not_allowed_handler or tree2.method_not_allowed_handler
    )

    if tree2.middleware and tree1.middleware != tree2.middleware:
        msg = "node being merged in has conflicting middleware"
        raise ValueError(msg)
    middleware = tree1.middleware or tree2.middleware

    if tree1.param is not None and tree2.param is not None:
        if tree1.param.name != tree2.param.name:
            msg = (
                f"conflicting path params :{tree1.param.name} and :{tree2.param.name}"
            )
            raise ValueError(msg)
        param: ParamNode[T] | None = ParamNode(
            name=tree1.param.name,
            child=_merge_trees(tree1.param.child, tree2.param.child),
        )
    else:
        param = tree1.param or tree2.param

    if tree1.catchall is not None and tree2.catchall is not None:
        if tree1.catchall.name != tree2.catchall.name:
            msg = "nodes have conflicting catchalls"
            raise ValueError(msg)
        catchall: CatchAllNode[T] | None = CatchAllNode(
            name=tree1.catchall.name,
            child=_merge_trees(tree1.catchall.child, tree2.catchall.child),
        )
    else:
        catchall = tree1.catchall or tree2.catchall

    tree1_keys = set(tree1.children.keys())
    tree2_keys = set(tree2.children.keys())
    children: FrozenDict[str | LeafKey, Node[T]] = FrozenDict(
        {k: tree1.children[k] for k in tree1_keys - tree2_keys}
        | {k: tree2.children[k] for k in tree2_keys - tree1_keys}
        | {
            k: _merge_trees(tree1.children[k], tree2.children[k])
            for k in tree1_keys & tree2_keys
        }
    )

    return Node(
        handler=handler,
        middleware=middleware,
        children=children,
        param=param,
        catchall=catchall,
        not_found_handler=not_found_handler,
        method_not_allowed_handler=method_not_allowed_handler,
    )
