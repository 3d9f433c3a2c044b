"""Immutable inbound HTTP request.

Frozen metadata plus a body stream that can be consumed exactly once.
The forwarder hands ``stream()`` straight to the outbound request, so
the body is never buffered in full.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

from relay._internal.asgi import Receive
from relay.errors import ClientDisconnect
from relay.http.headers import Headers


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable inbound HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    The body is read through ``stream()``, once.
    """

    method: str
    path: str
    raw_path: bytes
    query_string: bytes
    headers: Headers
    http_version: str
    client: tuple[str, int] | None

    # Private: ASGI receive callable for body streaming
    _receive: Receive | None = field(default=None, repr=False, compare=False)

    # Private: mutable state (dict contents are mutable even though the
    # field reference is frozen)
    _state: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def target_path(self) -> str:
        """Path as sent on the request line, query string included.

        Prefers the undecoded ``raw_path`` so percent-escapes reach the
        upstream exactly as the caller wrote them.
        """
        path = self.raw_path.decode("latin-1") if self.raw_path else self.path
        if self.query_string:
            return f"{path}?{self.query_string.decode('latin-1')}"
        return path

    @property
    def has_body(self) -> bool:
        """True if the request declares a body (Content-Length > 0 or chunked)."""
        if "transfer-encoding" in self.headers:
            return True
        value = self.headers.get("content-length")
        if value is None:
            return False
        try:
            return int(value) > 0
        except ValueError:
            return False

    # -- Body access --

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks as they arrive.

        Raises ``RuntimeError`` on a second call and ``ClientDisconnect``
        if the caller disconnects before the body is complete.
        """
        if self._state.get("consumed"):
            msg = "Request body has already been consumed."
            raise RuntimeError(msg)
        self._state["consumed"] = True
        if self._receive is None:
            return
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect(f"Client disconnected during {self.method} {self.path}")
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: dict[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            raw_path=scope.get("raw_path") or b"",
            query_string=scope.get("query_string", b""),
            headers=Headers(tuple(scope.get("headers", ()))),
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
            _receive=receive,
        )
