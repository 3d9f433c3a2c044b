"""Route and RouteMatch frozen dataclasses."""

from dataclasses import dataclass

from relay._internal.types import Handler


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:    ``/users``     (is_param=False)
    Param:     ``/{id}``      (is_param=True, param_name="id")
    Typed:     ``/{id:int}``  (is_param=True, param_name="id", param_type="int")
    Echo:      ``/:id``       (is_param=True, param_name="id")
    Catch-all: ``/*``         (is_param=True, param_name="*", param_type="path")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Created by the registrar, compiled into the router at freeze time.
    ``target`` is the upstream base address of the rule the route forwards to.
    """

    path: str
    handler: Handler
    methods: frozenset[str]
    target: str | None = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str]
