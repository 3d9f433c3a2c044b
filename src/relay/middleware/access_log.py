"""Access log middleware.

Logs one line per request once the response status is decided::

    GET /api/users?x=1 -> 200 (12.3ms) 127.0.0.1

For relayed responses the time covers the upstream round trip up to
the response headers, not the body transfer.
"""

import logging
import time

from relay.errors import HTTPError
from relay.http.request import Request
from relay.middleware.protocol import AnyResponse, Next

logger = logging.getLogger("relay.access")


class AccessLog:
    """Log method, target, status, latency, and client address.

    Usage::

        app.add_middleware(AccessLog())
    """

    __slots__ = ("logger",)

    def __init__(self, logger_: logging.Logger | None = None) -> None:
        self.logger = logger_ or logger

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        start = time.perf_counter()
        client = request.client[0] if request.client else "-"
        try:
            response = await next(request)
        except HTTPError as exc:
            self._log(request, exc.status, start, client)
            raise
        except Exception:
            self._log(request, 500, start, client)
            raise
        self._log(request, response.status, start, client)
        return response

    def _log(self, request: Request, status: int, start: float, client: str) -> None:
        elapsed_ms = (time.perf_counter() - start) * 1000
        self.logger.info(
            "%s %s -> %d (%.1fms) %s",
            request.method,
            request.target_path,
            status,
            elapsed_ms,
            client,
        )
