"""Route registrar — turns the route table into router entries.

Every rule is registered once under its ``from`` pattern for all seven
forwarded methods. Each handler is built by ``make_handler`` with the
rule passed in as an argument, so it keeps its own target no matter
which rules are registered after it.
"""

from relay._internal.types import Handler
from relay.forwarding import Forwarder
from relay.http.request import Request
from relay.http.response import StreamingResponse
from relay.routing.route import Route
from relay.routing.router import Router
from relay.rules import Rule, RouteTable

FORWARD_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")


def make_handler(rule: Rule, forwarder: Forwarder) -> Handler:
    """Build the handler that forwards matched requests to ``rule.target``."""
    target = rule.target

    async def forward_to_rule(request: Request) -> StreamingResponse:
        return await forwarder.forward(request, target)

    forward_to_rule.__name__ = f"forward_to[{target}]"
    return forward_to_rule


def register_rules(router: Router, table: RouteTable, forwarder: Forwarder) -> None:
    """Register every rule in *table* on *router*, in table order.

    Raises ``ConfigurationError`` if the router rejects a pattern.
    """
    methods = frozenset(FORWARD_METHODS)
    for rule in table:
        router.add(
            Route(
                path=rule.source,
                handler=make_handler(rule, forwarder),
                methods=methods,
                target=rule.target,
            )
        )
