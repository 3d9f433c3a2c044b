"""Shared fixtures: a recording mock upstream and an App factory wired to it."""

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from relay.app import App
from relay.config import AppConfig
from relay.forwarding import Forwarder
from relay.rules import Rule, RouteTable


def reply(
    status: int, body: bytes = b"", headers: list[tuple[str, str]] | None = None
) -> httpx.Response:
    """An upstream response with an unread body and a trailing content-length."""
    pairs = [*(headers or []), ("content-length", str(len(body)))]
    return httpx.Response(status, headers=pairs, stream=httpx.ByteStream(body))


class Upstream:
    """A fake upstream behind ``httpx.MockTransport``.

    Records every outbound request (body already read) and answers with
    ``responder``, which defaults to ``200 ok``. Bodies are given as
    streams so the forwarder can read them raw, as from a real socket.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: reply(
            200, b"ok"
        )
        self.delay: float = 0.0

    reply = staticmethod(reply)

    def respond(
        self, status: int, body: bytes = b"", headers: list[tuple[str, str]] | None = None
    ) -> None:
        self.responder = lambda request: reply(status, body, headers)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def make_app(upstream: Upstream) -> Callable[..., App]:
    """Build an App from ``(from, to)`` pairs whose forwarder talks to ``upstream``."""

    def _make(*rules: tuple[str, str], **config: Any) -> App:
        config.setdefault("access_log", False)
        table = RouteTable([Rule(source, target) for source, target in rules])
        return App(
            AppConfig(**config),
            table,
            forwarder=Forwarder(transport=upstream.transport),
        )

    return _make
