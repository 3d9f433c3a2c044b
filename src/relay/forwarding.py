"""Forwarding engine — relays one inbound request to its upstream.

For every request the engine:

1. builds the outbound URL as ``target + request.target_path`` (literal
   concatenation, nothing stripped or normalized),
2. copies the method, every header pair in order (duplicates and
   hop-by-hop headers included), and the body stream,
3. sends it with a fresh httpx client (no retries, no redirects followed),
4. returns a ``StreamingResponse`` carrying the upstream status, the
   upstream header pairs, and the upstream body as raw chunks.

The upstream response and its client are released exactly once, by
``StreamingResponse.close()``, whichever way the relay ends.
"""

import logging
import re
from collections.abc import AsyncIterator

import httpx

from relay.errors import StreamInterrupted, UpstreamRequestError, UpstreamUnavailable
from relay.http.request import Request
from relay.http.response import StreamingResponse

logger = logging.getLogger("relay.forward")

# scheme://authority, then everything the request line carries
_ORIGIN_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://[^/?#]*(?P<target>[^#]*)", re.DOTALL)


class Forwarder:
    """Relays requests to upstream base addresses over HTTP(S).

    Holds only immutable settings; every call to ``forward`` owns its
    own client and response, so concurrent forwards share nothing.

    Args:
        timeout: Per-request deadline in seconds. ``None`` waits on the upstream
            indefinitely.
        verify: Verify upstream TLS certificates.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    __slots__ = ("_ssl_context", "_timeout", "_transport")

    def __init__(
        self,
        *,
        timeout: float | None = None,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._ssl_context = httpx.create_ssl_context(verify=verify) if transport is None else None

    def _client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=False,
            )
        return httpx.AsyncClient(
            verify=self._ssl_context,
            timeout=self._timeout,
            follow_redirects=False,
            trust_env=False,
        )

    def build_request(self, request: Request, target: str) -> httpx.Request:
        """Build the outbound request for *request* against base address *target*.

        Raises ``UpstreamRequestError`` if the concatenated URL is not valid.
        The client's default headers are not merged in.
        """
        url = target + request.target_path
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise UpstreamRequestError(url, str(exc)) from exc
        if parsed.scheme not in ("http", "https"):
            raise UpstreamRequestError(url, f"unsupported scheme {parsed.scheme!r}")
        if not parsed.host:
            raise UpstreamRequestError(url, "missing host")

        # httpx.URL removes "." and ".." segments; the request line must not.
        extensions: dict[str, bytes] = {}
        literal = _request_target(url)
        if literal is not None and literal != parsed.raw_path:
            extensions["target"] = literal

        return httpx.Request(
            request.method,
            parsed,
            headers=request.headers.items_all(),
            content=request.stream() if request.has_body else None,
            extensions=extensions,
        )

    async def forward(self, request: Request, target: str) -> StreamingResponse:
        """Send *request* to ``target + path`` and return the streamed upstream response.

        Raises ``UpstreamRequestError`` (500) when the request cannot be
        built and ``UpstreamUnavailable`` (502) on any transport failure.
        Nothing has been sent to the caller when either is raised.
        """
        outbound = self.build_request(request, target)
        url = target + request.target_path
        logger.info(
            "Forwarding %s request from %s to %s", request.method, request.target_path, url
        )

        client = self._client()
        try:
            upstream = await client.send(outbound, stream=True)
        except httpx.UnsupportedProtocol as exc:
            await client.aclose()
            raise UpstreamRequestError(url, str(exc)) from exc
        except httpx.RequestError as exc:
            await client.aclose()
            logger.warning("Upstream %s %s failed: %s", request.method, url, exc)
            raise UpstreamUnavailable(url, str(exc) or type(exc).__name__) from exc
        except BaseException:
            await client.aclose()
            raise

        closed = False

        async def release() -> None:
            nonlocal closed
            if closed:
                return
            closed = True
            try:
                await upstream.aclose()
            finally:
                await client.aclose()

        return StreamingResponse(
            chunks=_relay_body(upstream, url),
            status=upstream.status_code,
            headers=tuple(
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in upstream.headers.raw
            ),
            on_close=release,
        )


async def _relay_body(upstream: httpx.Response, url: str) -> AsyncIterator[bytes]:
    """Yield the upstream body as received on the wire (no decoding)."""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as exc:
        msg = f"Upstream {url} failed mid-body: {str(exc) or type(exc).__name__}"
        raise StreamInterrupted(msg) from exc


def _request_target(url: str) -> bytes | None:
    """The path and query of *url* exactly as written.

    Returns None when the text cannot go on a request line verbatim
    (non-ASCII, whitespace, control characters); httpx's percent-encoded
    form is used then.
    """
    match = _ORIGIN_RE.match(url)
    if match is None:
        return None
    target = match.group("target")
    if not target.startswith("/"):
        target = "/" + target
    if not target.isascii() or any(c <= " " or c == "\x7f" for c in target):
        return None
    return target.encode("ascii")
