"""Tests for relay.server.sender — Response and StreamingResponse to ASGI messages."""

import logging
from collections.abc import AsyncIterator
from typing import Any

import pytest

from relay.http.response import Response, StreamingResponse
from relay.server.sender import send_response, send_streaming_response


class _Capture:
    def __init__(self, fail_on_body: int | None = None) -> None:
        self.messages: list[dict[str, Any]] = []
        self.fail_on_body = fail_on_body

    async def __call__(self, message: dict[str, Any]) -> None:
        if message["type"] == "http.response.body" and self.fail_on_body is not None:
            bodies = [m for m in self.messages if m["type"] == "http.response.body"]
            if len(bodies) == self.fail_on_body:
                raise OSError("client went away")
        self.messages.append(message)


class _Closer:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


async def _chunks(*parts: bytes, error: Exception | None = None) -> AsyncIterator[bytes]:
    for part in parts:
        yield part
    if error is not None:
        raise error


class TestSendResponse:
    async def test_adds_content_type_and_length(self) -> None:
        send = _Capture()
        await send_response(Response(body="Bad Gateway", status=502), send)

        start, body = send.messages
        assert start["status"] == 502
        assert (b"content-type", b"text/plain; charset=utf-8") in start["headers"]
        assert (b"content-length", b"11") in start["headers"]
        assert body["body"] == b"Bad Gateway"

    async def test_extra_headers(self) -> None:
        send = _Capture()
        await send_response(Response(body="no", status=405).with_header("Allow", "GET"), send)

        assert (b"allow", b"GET") in send.messages[0]["headers"]

    async def test_no_body_for_204(self) -> None:
        send = _Capture()
        await send_response(Response(body="ignored", status=204), send)

        assert send.messages[1]["body"] == b""


class TestSendStreamingResponse:
    async def test_headers_verbatim_then_chunks(self) -> None:
        send = _Capture()
        response = StreamingResponse(
            chunks=_chunks(b"one", b"", b"two"),
            status=207,
            headers=(("Set-Cookie", "a=1"), ("X-Up", "y"), ("Set-Cookie", "b=2")),
        )
        await send_streaming_response(response, send)

        start, *bodies = send.messages
        assert start["status"] == 207
        assert start["headers"] == [
            (b"set-cookie", b"a=1"),
            (b"x-up", b"y"),
            (b"set-cookie", b"b=2"),
        ]
        assert [m["body"] for m in bodies] == [b"one", b"two", b""]
        assert [m["more_body"] for m in bodies] == [True, True, False]

    async def test_adds_no_headers(self) -> None:
        send = _Capture()
        await send_streaming_response(StreamingResponse(chunks=_chunks(b"x")), send)

        assert send.messages[0]["headers"] == []

    async def test_closes_after_success(self) -> None:
        closer = _Closer()
        response = StreamingResponse(chunks=_chunks(b"x"), on_close=closer)
        await send_streaming_response(response, _Capture())

        assert closer.calls == 1

    async def test_source_failure_reraised_after_partial_body(self, caplog) -> None:
        closer = _Closer()
        send = _Capture()
        response = StreamingResponse(
            chunks=_chunks(b"partial", error=RuntimeError("upstream reset")),
            on_close=closer,
        )

        with caplog.at_level(logging.ERROR, logger="relay.server"):
            with pytest.raises(RuntimeError, match="upstream reset"):
                await send_streaming_response(response, send)

        bodies = [m for m in send.messages if m["type"] == "http.response.body"]
        assert [m["body"] for m in bodies] == [b"partial"]
        assert all(m["more_body"] for m in bodies)
        assert closer.calls == 1
        assert "Relay interrupted after 7 body bytes" in caplog.text

    async def test_caller_failure_releases_source(self) -> None:
        closer = _Closer()
        response = StreamingResponse(chunks=_chunks(b"a", b"b", b"c"), on_close=closer)

        with pytest.raises(OSError, match="client went away"):
            await send_streaming_response(response, _Capture(fail_on_body=1))

        assert closer.calls == 1
