"""End-to-end tests: App + TestClient against a mock upstream."""

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from relay.app import App
from relay.config import AppConfig
from relay.errors import ConfigurationError, StreamInterrupted
from relay.forwarding import Forwarder
from relay.http.response import Response
from relay.registrar import FORWARD_METHODS
from relay.rules import Rule, RouteTable
from relay.testing import TestClient


def _make_scope(path: str, method: str = "GET") -> dict[str, Any]:
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 1234),
    }


async def _no_body() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


class _TrackedStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes], fail_after: bool = False) -> None:
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        if self.fail_after:
            raise httpx.ReadError("connection reset by upstream")

    async def aclose(self) -> None:
        self.closed += 1


class TestForwardingScenario:
    async def test_api_rule(self, upstream, make_app) -> None:
        upstream.respond(200, b'{"ok":true}', [("content-type", "application/json")])
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api/users?x=1")

        assert response.status == 200
        assert response.body == b'{"ok":true}'
        assert response.content_type == "application/json"
        assert upstream.last.method == "GET"
        assert str(upstream.last.url) == "http://upstream:8080/api/users?x=1"

    @pytest.mark.parametrize("method", FORWARD_METHODS)
    async def test_every_forwarded_method(self, upstream, make_app, method: str) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.request(method, "/api/items/7")

        assert response.status == 200
        assert upstream.last.method == method
        assert str(upstream.last.url) == "http://upstream:8080/api/items/7"

    async def test_upstream_status_relayed(self, upstream, make_app) -> None:
        upstream.respond(404, b"no such user")
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api/users/99")

        assert response.status == 404
        assert response.body == b"no such user"

    async def test_overlapping_prefixes(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://v1"), ("/api/v2/*", "http://v2"))

        async with TestClient(app) as client:
            await client.get("/api/v2/users")
            await client.get("/api/users")

        assert [str(r.url) for r in upstream.requests] == [
            "http://v2/api/v2/users",
            "http://v1/api/users",
        ]

    async def test_same_pattern_later_rule_wins(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://first"), ("/api/*", "http://second"))

        async with TestClient(app) as client:
            await client.get("/api/x")

        assert upstream.last.url.host == "second"

    async def test_empty_remainder_matches_star(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api/")

        assert response.status == 200
        assert str(upstream.last.url) == "http://upstream:8080/api/"

    async def test_bare_prefix_matches_star(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api")

        assert response.status == 200
        assert str(upstream.last.url) == "http://upstream:8080/api"

    async def test_pattern_parameters_do_not_rewrite_path(self, upstream, make_app) -> None:
        app = make_app(("/svc/{name}/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            await client.get("/svc/alpha/items/7?full=1")

        assert str(upstream.last.url) == "http://upstream:8080/svc/alpha/items/7?full=1"


class TestUnmatched:
    async def test_no_rule_is_404(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/other")

        assert response.status == 404
        assert upstream.requests == []

    async def test_unforwarded_method_is_405(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.request("TRACE", "/api/x")

        assert response.status == 405
        assert response.header_list("allow") == ["DELETE, GET, HEAD, OPTIONS, PATCH, POST, PUT"]
        assert upstream.requests == []


class TestHeaders:
    async def test_repeated_request_headers_reach_upstream(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))
        headers = [
            ("X-Forwarded-For", "10.0.0.1"),
            ("Accept", "*/*"),
            ("X-Forwarded-For", "10.0.0.2"),
        ]

        async with TestClient(app) as client:
            await client.get("/api/x", headers=headers)

        assert upstream.last.headers.get_list("x-forwarded-for") == ["10.0.0.1", "10.0.0.2"]
        assert "user-agent" not in upstream.last.headers

    async def test_repeated_response_headers_reach_caller(self, upstream, make_app) -> None:
        upstream.respond(
            200,
            b"x",
            [("Set-Cookie", "a=1"), ("Cache-Control", "no-store"), ("Set-Cookie", "b=2")],
        )
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.headers[:3] == (
            ("set-cookie", "a=1"),
            ("cache-control", "no-store"),
            ("set-cookie", "b=2"),
        )
        assert response.header_list("content-length") == ["1"]


class TestBodies:
    async def test_large_response_body(self, upstream, make_app) -> None:
        payload = bytes(range(256)) * 4096
        upstream.respond(200, payload)
        app = make_app(("/files/*", "http://cdn"))

        async with TestClient(app) as client:
            response = await client.get("/files/blob.bin")

        assert response.body == payload

    async def test_request_body(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            await client.post("/api/items", body=b'{"name":"x"}')

        assert upstream.last.content == b'{"name":"x"}'
        assert upstream.last.headers["content-length"] == "12"

    async def test_chunked_upload(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))
        parts = [b"a" * 1000, b"b" * 1000, b"c" * 10]

        async with TestClient(app) as client:
            await client.request("PUT", "/api/upload", chunks=parts)

        assert upstream.last.content == b"".join(parts)
        assert upstream.last.headers["transfer-encoding"] == "chunked"

    async def test_no_content_response(self, upstream, make_app) -> None:
        upstream.responder = lambda request: httpx.Response(
            204, headers=[("x-up", "1")], stream=httpx.ByteStream(b"")
        )
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.delete("/api/items/1")

        assert response.status == 204
        assert response.body == b""
        assert response.header_list("x-up") == ["1"]

    async def test_empty_ok_response(self, upstream, make_app) -> None:
        upstream.respond(200, b"", [("x-up", "1")])
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api/empty")

        assert response.status == 200
        assert response.body == b""
        assert response.header_list("content-length") == ["0"]
        assert response.header_list("x-up") == ["1"]

    async def test_head_keeps_upstream_content_length(self, upstream, make_app) -> None:
        upstream.responder = lambda request: httpx.Response(
            200, headers=[("content-length", "42")], stream=httpx.ByteStream(b"")
        )
        app = make_app(("/files/*", "http://cdn"))

        async with TestClient(app) as client:
            response = await client.head("/files/report.pdf")

        assert upstream.last.method == "HEAD"
        assert response.status == 200
        assert response.header_list("content-length") == ["42"]
        assert response.body == b""


class TestConcurrency:
    async def test_concurrent_requests_are_isolated(self, upstream, make_app) -> None:
        upstream.delay = 0.02
        upstream.responder = lambda request: upstream.reply(200, str(request.url).encode())
        app = make_app(("/a/*", "http://alpha"), ("/b/*", "http://beta"))

        async with TestClient(app) as client:
            paths = [f"/{prefix}/{n}" for n in range(5) for prefix in ("a", "b")]
            responses = await asyncio.gather(*(client.get(p) for p in paths))

        for path, response in zip(paths, responses, strict=True):
            host = "alpha" if path.startswith("/a/") else "beta"
            assert response.body == f"http://{host}{path}".encode()


class TestUpstreamFailures:
    async def test_unreachable_upstream_is_502(self, upstream, make_app) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        upstream.responder = refuse
        app = make_app(("/api/*", "http://down:1"))

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.status == 502
        assert response.text == "Bad Gateway"

    async def test_debug_shows_upstream_detail(self, upstream, make_app) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        upstream.responder = refuse
        app = make_app(("/api/*", "http://down:1"), debug=True)

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.status == 502
        assert "http://down:1/api/x" in response.text

    async def test_unusable_target_is_500(self, upstream, make_app) -> None:
        app = make_app(("/api/*", "upstream:8080"))

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert upstream.requests == []

    async def test_failure_does_not_affect_next_request(self, upstream, make_app) -> None:
        calls = 0

        def flaky(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("refused", request=request)
            return upstream.reply(200, b"recovered")

        upstream.responder = flaky
        app = make_app(("/api/*", "http://upstream:8080"))

        async with TestClient(app) as client:
            first = await client.get("/api/x")
            second = await client.get("/api/x")

        assert (first.status, second.status) == (502, 200)
        assert second.body == b"recovered"


class TestStreamingFailures:
    async def test_mid_body_failure_aborts_after_flushed_bytes(self, upstream, make_app) -> None:
        stream = _TrackedStream([b"first chunk"], fail_after=True)
        upstream.responder = lambda request: httpx.Response(200, stream=stream)
        app = make_app(("/api/*", "http://upstream:8080"))
        sent: list[dict[str, Any]] = []

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        with pytest.raises(StreamInterrupted):
            await app(_make_scope("/api/big"), _no_body, send)

        assert sent[0]["type"] == "http.response.start"
        assert sent[1]["body"] == b"first chunk"
        assert not any(m.get("more_body") is False for m in sent)
        assert stream.closed == 1

    async def test_caller_gone_releases_upstream(self, upstream, make_app) -> None:
        stream = _TrackedStream([b"a", b"b", b"c"])
        upstream.responder = lambda request: httpx.Response(200, stream=stream)
        app = make_app(("/api/*", "http://upstream:8080"))

        async def send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.body":
                raise OSError("broken pipe")

        with pytest.raises(OSError, match="broken pipe"):
            await app(_make_scope("/api/x"), _no_body, send)

        assert stream.closed == 1


class TestLifecycle:
    async def test_lifespan_runs_hooks(self, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))
        events: list[str] = []

        @app.on_startup
        async def started() -> None:
            events.append("startup")

        @app.on_shutdown
        def stopped() -> None:
            events.append("shutdown")

        incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            return incoming.pop(0)

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)

        assert events == ["startup", "shutdown"]
        assert [m["type"] for m in sent] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]

    async def test_bad_pattern_fails_startup(self, make_app) -> None:
        app = make_app(("/api/*/users", "http://upstream:8080"))
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            return {"type": "lifespan.startup"}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)

        assert sent[0]["type"] == "lifespan.startup.failed"
        assert "/api/*/users" in sent[0]["message"]

    def test_router_property_raises_for_bad_pattern(self, make_app) -> None:
        app = make_app(("no-slash", "http://upstream:8080"))
        with pytest.raises(ConfigurationError):
            _ = app.router

    def test_no_changes_after_freeze(self, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))
        _ = app.router

        async def noop(request, next):
            return await next(request)

        with pytest.raises(RuntimeError, match="Cannot modify the app"):
            app.add_middleware(noop)

    def test_from_file(self, tmp_path: Path, upstream) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "server:\n  port: 6000\nroutes:\n  - from: /api/*\n    to: http://upstream:8080\n"
        )
        app = App.from_file(path, forwarder=Forwarder(transport=upstream.transport))

        assert app.config.port == 6000
        assert list(app.rules) == [Rule("/api/*", "http://upstream:8080")]
        assert app.router.match("PATCH", "/api/x").route.target == "http://upstream:8080"

    def test_defaults_without_rules(self) -> None:
        app = App()
        assert app.config == AppConfig()
        assert app.rules == RouteTable()
        assert app.router.routes == []


class TestMiddleware:
    async def test_custom_middleware_wraps_relayed_response(self, make_app) -> None:
        app = make_app(("/api/*", "http://upstream:8080"))

        async def tag(request, next):
            response = await next(request)
            return response.with_header("X-Relayed-By", "relay")

        app.add_middleware(tag)

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.header_list("x-relayed-by") == ["relay"]
        assert response.body == b"ok"

    async def test_middleware_error_after_relay_releases_upstream(
        self, upstream, make_app
    ) -> None:
        stream = _TrackedStream([b"never sent"])
        upstream.responder = lambda request: httpx.Response(200, stream=stream)
        app = make_app(("/api/*", "http://upstream:8080"))

        async def broken(request, next):
            await next(request)
            raise ValueError("middleware bug")

        app.add_middleware(broken)

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.status == 500
        assert b"never sent" not in response.body
        assert stream.closed == 1

    async def test_replaced_relayed_response_releases_upstream(
        self, upstream, make_app
    ) -> None:
        stream = _TrackedStream([b"upstream body"])
        upstream.responder = lambda request: httpx.Response(200, stream=stream)
        app = make_app(("/api/*", "http://upstream:8080"))

        async def cached(request, next):
            await next(request)
            return Response("from cache")

        app.add_middleware(cached)

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.body == b"from cache"
        assert stream.closed == 1

    async def test_wrapped_relayed_response_released_once(self, upstream, make_app) -> None:
        stream = _TrackedStream([b"a", b"b"])
        upstream.responder = lambda request: httpx.Response(200, stream=stream)
        app = make_app(("/api/*", "http://upstream:8080"))

        async def tag(request, next):
            response = await next(request)
            return response.with_header("X-Relayed-By", "relay")

        app.add_middleware(tag)

        async with TestClient(app) as client:
            response = await client.get("/api/x")

        assert response.body == b"ab"
        assert stream.closed == 1

    async def test_access_log_enabled_by_config(self, make_app, caplog) -> None:
        app = make_app(("/api/*", "http://upstream:8080"), access_log=True)

        with caplog.at_level(logging.INFO, logger="relay.access"):
            async with TestClient(app) as client:
                await client.get("/api/users?x=1")
                await client.get("/nowhere")

        assert "GET /api/users?x=1 -> 200" in caplog.text
        assert "GET /nowhere -> 404" in caplog.text
