"""Relay exception hierarchy.

Shared across the rule loader, Router, Forwarder, and ASGI handler so every
module raises and catches the same types.
"""

from dataclasses import dataclass


class RelayError(Exception):
    """Base for all relay-specific errors."""


class ConfigurationError(RelayError):
    """Raised when the rule file or a route pattern is invalid.

    Always a startup condition: raised while loading the config or while
    the app freezes its router, never while serving a request.
    """


class ClientDisconnect(RelayError):  # noqa: N818
    """Raised when the caller goes away while its request body is streamed."""


class StreamInterrupted(RelayError):  # noqa: N818
    """Raised when relaying a response body fails after headers were sent.

    Bytes already flushed to the caller stay sent; the server aborts the
    connection so the truncation is visible.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(RelayError):
    """An error that maps directly to an HTTP status code.

    Raised by the router or the forwarder. The ASGI handler catches these
    and turns them into a plain-text error response for that request only.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no rule pattern matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — the path matched but not for this HTTP method.

    Only reachable for methods outside the forwarded set (e.g. TRACE).
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class UpstreamRequestError(HTTPError):
    """500 — the outbound request could not be built (bad URL or scheme)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(status=500, detail=f"Cannot build upstream request for {url}: {reason}")


class UpstreamUnavailable(HTTPError):  # noqa: N818
    """502 — the upstream could not be reached (DNS, refused, timeout, TLS)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(status=502, detail=f"Upstream {url} unreachable: {reason}")
