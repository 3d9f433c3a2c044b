"""ASGI response sending — translates relay response types to ASGI messages.

Handles both buffered error responses and relayed streaming responses.
"""

import logging

from relay._internal.asgi import Send
from relay.http.response import Response, StreamingResponse

logger = logging.getLogger("relay.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def _encode_headers(headers: tuple[tuple[str, str], ...]) -> list[tuple[bytes, bytes]]:
    return [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in headers]


async def send_response(response: Response, send: Send) -> None:
    """Translate a buffered Response into ASGI send() calls."""
    raw_headers: list[tuple[bytes, bytes]] = [
        (b"content-type", response.content_type.encode("latin-1")),
        *_encode_headers(response.headers),
    ]

    body = response.body_bytes if _body_allowed(response.status) else b""

    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )


async def send_streaming_response(response: StreamingResponse, send: Send) -> None:
    """Relay a StreamingResponse chunk by chunk.

    Sends the status and header list exactly as given, then each chunk
    as an ASGI body message with ``more_body=True``, then closes with an
    empty body. ``response.close()`` runs on every exit path.

    A failure after the headers went out (upstream read error, caller
    write error, cancellation) is logged and re-raised: the bytes already
    sent stand, and the server drops the connection instead of ending
    the body cleanly.
    """
    sent_bytes = 0
    try:
        await send(
            {
                "type": "http.response.start",
                "status": response.status,
                "headers": _encode_headers(response.headers),
            }
        )
        async for chunk in response.chunks:
            if chunk:
                await send(
                    {
                        "type": "http.response.body",
                        "body": chunk,
                        "more_body": True,
                    }
                )
                sent_bytes += len(chunk)
        await send(
            {
                "type": "http.response.body",
                "body": b"",
                "more_body": False,
            }
        )
    except Exception as exc:
        logger.error("Relay interrupted after %d body bytes: %s", sent_bytes, exc)
        raise
    finally:
        aclose = getattr(response.chunks, "aclose", None)
        try:
            if aclose is not None:
                await aclose()
        finally:
            await response.close()
