"""Compiled router with trie-based path matching.

Routes are registered while the app freezes and compiled into an
immutable lookup structure. Two pattern dialects are accepted because
rule files come from both worlds:

- braces: ``/users/{id}``, ``/users/{id:int}``, ``/files/{rest:path}``
- colon/star: ``/users/:id``, ``/api/*``
"""

import re
from dataclasses import dataclass

from relay.errors import ConfigurationError, MethodNotAllowed, NotFound
from relay.routing.params import CONVERTERS
from relay.routing.route import PathSegment, Route, RouteMatch

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _invalid(path: str, reason: str) -> ConfigurationError:
    return ConfigurationError(f"Invalid route pattern {path!r}: {reason}")


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/users/{id}"        -> [PathSegment("users"), PathSegment("{id}", is_param=True, ...)]
        "/users/:id"         -> [PathSegment("users"), PathSegment(":id", is_param=True, ...)]
        "/files/{path:path}" -> [PathSegment("files"), PathSegment("{path:path}", param_type="path")]
        "/api/*"             -> [PathSegment("api"), PathSegment("*", param_type="path")]

    Raises ``ConfigurationError`` for patterns the router cannot compile.
    """
    if not path:
        raise _invalid(path, "pattern is empty")
    if not path.startswith("/"):
        raise _invalid(path, "pattern must start with '/'")

    segments: list[PathSegment] = []
    parts = [p for p in path.strip("/").split("/") if p]
    for index, part in enumerate(parts):
        is_last = index == len(parts) - 1
        if part.startswith("<") and part.endswith(">"):
            raise _invalid(path, "use {param} or :param, not <param>")

        if part == "*":
            if not is_last:
                raise _invalid(path, "'*' is only allowed as the last segment")
            segments.append(
                PathSegment(value=part, is_param=True, param_name="*", param_type="path")
            )
            continue

        if "*" in part:
            raise _invalid(path, "'*' must be a whole segment")

        if part.startswith(":"):
            param_name, param_type = part[1:], "str"
        elif part.startswith("{") and part.endswith("}"):
            inner = part[1:-1]
            param_name, _, param_type = inner.partition(":")
            param_type = param_type or "str"
        else:
            segments.append(PathSegment(value=part))
            continue

        if not _NAME_RE.match(param_name):
            raise _invalid(path, f"bad parameter name {param_name!r}")
        if param_type not in CONVERTERS:
            raise _invalid(path, f"unknown converter {param_type!r}")
        if param_type == "path" and not is_last:
            raise _invalid(path, "a path parameter must be the last segment")
        segments.append(
            PathSegment(
                value=part,
                is_param=True,
                param_name=param_name,
                param_type=param_type,
            )
        )
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("catch_all_route", "children", "param_child", "routes_by_method")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Single parameter child (only one param pattern per level)
        self.param_child: _ParamEdge | None = None
        # Catch-all route (path converter or "*")
        self.catch_all_route: _CatchAllEdge | None = None
        # Routes at this node, keyed by HTTP method
        self.routes_by_method: dict[str, Route] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    """A catch-all edge — consumes the remaining path.

    ``allow_empty`` is set for ``*`` so ``/api/*`` also matches ``/api/`` and ``/api``.
    """

    param_name: str
    allow_empty: bool
    route_by_method: dict[str, Route]


class Router:
    """Compiled router with trie-based path matching.

    Precedence at every level is static segment, then parameter, then
    catch-all. Registering the same pattern and method twice replaces
    the earlier route.

    Matching ignores empty segments, so a trailing slash is not
    significant: ``/users/`` matches ``/users``, and ``/api/*`` matches
    both ``/api/`` and ``/api`` with an empty remainder.

    Usage::

        router = Router()
        router.add(Route("/api/*", handler, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/api/users")
    """

    __slots__ = ("_compiled", "_root")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route to the router. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = parse_path(route.path)
        node = self._root

        for seg in segments:
            if seg.is_param and seg.param_type == "path":
                name = seg.param_name or "path"
                edge = node.catch_all_route
                if edge is None:
                    edge = _CatchAllEdge(
                        param_name=name,
                        allow_empty=seg.value == "*",
                        route_by_method={},
                    )
                    node.catch_all_route = edge
                elif edge.param_name != name:
                    raise _invalid(
                        route.path,
                        f"catch-all {name!r} conflicts with existing {edge.param_name!r}",
                    )
                for method in route.methods:
                    edge.route_by_method[method] = route
                return

            if seg.is_param:
                name = seg.param_name or ""
                if node.param_child is None:
                    pattern = CONVERTERS[seg.param_type]
                    node.param_child = _ParamEdge(
                        param_name=name,
                        param_type=seg.param_type,
                        regex=re.compile(f"^{pattern}$"),
                        node=_TrieNode(),
                    )
                elif (node.param_child.param_name, node.param_child.param_type) != (
                    name,
                    seg.param_type,
                ):
                    existing = node.param_child
                    raise _invalid(
                        route.path,
                        f"parameter {name!r} conflicts with existing "
                        f"{existing.param_name!r} ({existing.param_type}) at the same position",
                    )
                node = node.param_child.node
            else:
                if seg.value not in node.children:
                    node.children[seg.value] = _TrieNode()
                node = node.children[seg.value]

        # Register methods at the terminal node
        for method in route.methods:
            node.routes_by_method[method] = route

    @property
    def routes(self) -> list[Route]:
        """Return all registered routes, each once.

        Traverses the trie to collect every unique Route object.
        """
        seen: set[int] = set()
        result: list[Route] = []
        self._collect_routes(self._root, seen, result)
        return result

    def _collect_routes(
        self,
        node: _TrieNode,
        seen: set[int],
        result: list[Route],
    ) -> None:
        """Recursively collect routes from the trie."""
        candidates = list(node.routes_by_method.values())
        if node.catch_all_route is not None:
            candidates.extend(node.catch_all_route.route_by_method.values())
        for route in candidates:
            if id(route) not in seen:
                seen.add(id(route))
                result.append(route)

        for child in node.children.values():
            self._collect_routes(child, seen, result)

        if node.param_child is not None:
            self._collect_routes(node.param_child.node, seen, result)

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method against compiled routes.

        Returns a ``RouteMatch`` on success.
        Raises ``NotFound`` if no route matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        result = self._match_node(self._root, parts, 0, {})

        if result is None:
            raise NotFound(f"No route matches {method} {path!r}")

        routes_by_method, params = result
        if method in routes_by_method:
            return RouteMatch(route=routes_by_method[method], path_params=params)

        raise MethodNotAllowed(frozenset(routes_by_method))

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
    ) -> tuple[dict[str, Route], dict[str, str]] | None:
        """Recursively match path parts against the trie."""
        edge = node.catch_all_route

        # All parts consumed: this node, or an empty-capable catch-all
        if index == len(parts):
            if node.routes_by_method:
                return node.routes_by_method, params
            if edge is not None and edge.allow_empty:
                return edge.route_by_method, {**params, edge.param_name: ""}
            return None

        part = parts[index]

        # 1. Try static child first (exact match)
        if part in node.children:
            result = self._match_node(node.children[part], parts, index + 1, params)
            if result is not None:
                return result

        # 2. Try parameter child
        if node.param_child is not None:
            param = node.param_child
            if param.regex.match(part):
                new_params = {**params, param.param_name: part}
                result = self._match_node(param.node, parts, index + 1, new_params)
                if result is not None:
                    return result

        # 3. Try catch-all
        if edge is not None:
            remaining = "/".join(parts[index:])
            return edge.route_by_method, {**params, edge.param_name: remaining}

        return None
