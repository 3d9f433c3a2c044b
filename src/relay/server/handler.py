"""ASGI handler — translates ASGI scope/messages to relay types.

Converts the scope to a typed Request, dispatches it through the
middleware chain and the router, and sends the result back through
ASGI send(). Per-request failures end as error responses for that
request only; they never escape into other in-flight requests.
"""

from collections.abc import Callable
from typing import Any

from relay._internal.asgi import Receive, Scope, Send
from relay.errors import HTTPError
from relay.http.request import Request
from relay.http.response import StreamingResponse
from relay.middleware.protocol import AnyResponse, Next
from relay.routing.router import Router
from relay.server.errors import handle_http_error, handle_internal_error
from relay.server.sender import send_response, send_streaming_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    middleware: tuple[Callable[..., Any], ...],
    debug: bool,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    relayed: list[StreamingResponse] = []

    # Innermost handler: router dispatch to the matched rule's forwarder
    async def dispatch(req: Request) -> AnyResponse:
        match = router.match(req.method, req.path)
        response = await match.route.handler(req)
        if isinstance(response, StreamingResponse):
            relayed.append(response)
        return response

    # Wrap middleware around the dispatch
    handler: Next = dispatch
    for mw in reversed(middleware):

        async def make_next(req: Request, _mw: Any = mw, _next: Next = handler) -> AnyResponse:
            return await _mw(req, _next)

        handler = make_next

    try:
        response = await handler(request)
    except HTTPError as exc:
        response = handle_http_error(exc, request, debug)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug)

    # A relayed upstream that middleware dropped or replaced is released here;
    # the one being sent is released by the sender.
    outgoing = response.on_close if isinstance(response, StreamingResponse) else None
    for dropped in relayed:
        if dropped.on_close is not outgoing:
            await dropped.close()

    if isinstance(response, StreamingResponse):
        await send_streaming_response(response, send)
    else:
        await send_response(response, send)
