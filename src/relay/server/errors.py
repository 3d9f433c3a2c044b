"""Error handling pipeline for relay requests.

Maps HTTPError exceptions and unexpected failures to plain-text
Response objects. Both run before any byte of the response is sent,
so a failed forward never emits a partial body.
"""

import logging

from relay.errors import HTTPError
from relay.http.request import Request
from relay.http.response import Response

logger = logging.getLogger("relay.server")


def handle_http_error(exc: HTTPError, request: Request, debug: bool) -> Response:
    """Map an HTTPError to a Response."""
    if exc.status >= 500:
        logger.error("%d %s %s — %s", exc.status, request.method, request.path, exc.detail)
    else:
        logger.debug("%d %s %s — %s", exc.status, request.method, request.path, exc.detail)

    if exc.status >= 500 and not debug:
        # Upstream addresses stay out of client-facing bodies unless debugging
        detail = "Bad Gateway" if exc.status == 502 else "Internal Server Error"
    else:
        detail = exc.detail or f"Error {exc.status}"

    resp = Response(body=detail).with_status(exc.status)
    for name, value in exc.headers:
        resp = resp.with_header(name, value)
    return resp


def handle_internal_error(exc: Exception, request: Request, debug: bool) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)

    if debug:
        return Response(body=f"Internal Server Error\n\n{type(exc).__name__}: {exc}", status=500)
    return Response(body="Internal Server Error", status=500)
