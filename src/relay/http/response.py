"""HTTP responses with a chainable ``.with_*()`` transformation API.

``Response`` carries a complete body and is what error handling produces.
``StreamingResponse`` is what the forwarder produces: upstream status,
upstream header pairs verbatim, and a body that is pulled chunk by chunk.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class Response:
    """A buffered HTTP response built through immutable transformations.

    Construct with a body, then chain ``.with_*()`` calls to set
    status and headers. Each call returns a new ``Response``.
    """

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/plain; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()

    def with_status(self, status: int) -> "Response":
        """Return a new Response with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> "Response":
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def header_list(self, name: str) -> list[str]:
        """All values of header *name*, case-insensitive, in order."""
        name_lower = name.lower()
        return [v for k, v in self.headers if k.lower() == name_lower]

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body


@dataclass(frozen=True, slots=True)
class StreamingResponse:
    """A response whose body is relayed chunk by chunk.

    Headers are sent exactly as listed (no content-type or
    transfer-encoding is added), then each chunk as an ASGI body message.
    ``on_close`` releases whatever backs ``chunks`` and is awaited by the
    sender on every exit path.
    """

    chunks: AsyncIterator[bytes]
    status: int = 200
    headers: tuple[tuple[str, str], ...] = ()
    on_close: Callable[[], Awaitable[None]] | None = None

    def with_status(self, status: int) -> "StreamingResponse":
        """Return a new StreamingResponse with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> "StreamingResponse":
        """Return a new StreamingResponse with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    async def close(self) -> None:
        """Release the body source. Safe to call more than once."""
        if self.on_close is not None:
            await self.on_close()
