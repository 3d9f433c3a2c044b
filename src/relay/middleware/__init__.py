"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> AnyResponse

Built-in middleware:
    AccessLog -- One log line per request (method, path, status, latency)
"""

from relay.middleware.access_log import AccessLog
from relay.middleware.protocol import AnyResponse, Middleware, Next

__all__ = [
    "AccessLog",
    "AnyResponse",
    "Middleware",
    "Next",
]
