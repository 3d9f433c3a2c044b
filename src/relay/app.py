"""Relay application class.

Mutable during setup (rules, middleware, lifecycle hooks).
Frozen at runtime when app.run() or __call__() is first invoked: the
registrar compiles the route table into the router at that point.
"""

import threading
from pathlib import Path
from typing import Any

from relay._internal.asgi import Receive, Scope, Send
from relay._internal.invoke import invoke
from relay._internal.types import Hook
from relay.config import AppConfig, load_config
from relay.forwarding import Forwarder
from relay.middleware.access_log import AccessLog
from relay.middleware.protocol import Middleware
from relay.registrar import register_rules
from relay.routing.router import Router
from relay.rules import RouteTable
from relay.server.handler import handle_request


class App:
    """The relay application.

    Holds the route table, the forwarder, and the middleware chain.
    The forwarder is injected into the registrar at freeze time rather
    than looked up globally by handlers.

    Thread safety:
        The setup phase is single-threaded. The freeze transition uses a
        Lock + double-check so exactly one thread compiles the router,
        even when several ASGI workers receive their first request at once.
    """

    __slots__ = (
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
        "forwarder",
        "rules",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        rules: RouteTable | None = None,
        *,
        forwarder: Forwarder | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self.rules: RouteTable = rules if rules is not None else RouteTable()
        self.forwarder: Forwarder = forwarder or Forwarder(
            timeout=self.config.upstream_timeout,
            verify=self.config.verify_tls,
        )
        self._middleware_list: list[Middleware] = []
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._router: Router | None = None
        self._middleware: tuple[Middleware, ...] = ()

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> "App":
        """Build an App from a YAML rule file.

        ``overrides`` are passed to the constructor (e.g. ``forwarder=``).
        Raises ``ConfigurationError`` if the file is unreadable or invalid.
        """
        config, rules = load_config(path)
        return cls(config, rules, **overrides)

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Lifecycle hooks --

    def on_startup(self, func: Hook) -> Hook:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Introspection --

    @property
    def router(self) -> Router:
        """The compiled router (freezes the app if needed)."""
        self._ensure_frozen()
        assert self._router is not None
        return self._router

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start the server (dev or production based on config.debug).

        Compiles the router first, so a bad pattern fails before the
        listener binds.
        """
        self._ensure_frozen()

        _host = host or self.config.host
        _port = port or self.config.port

        if self.config.debug:
            from relay.server.dev import run_dev_server

            run_dev_server(self, _host, _port, reload=True)
        else:
            from relay.server.production import run_production_server

            run_production_server(
                self,
                host=_host,
                port=_port,
                workers=self.config.workers,
                log_format=self.config.log_format,
                log_level=self.config.log_level,
                max_connections=self.config.max_connections,
                keep_alive_timeout=self.config.keep_alive_timeout,
            )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        assert self._router is not None

        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            middleware=self._middleware,
            debug=self.config.debug,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup, so route registration errors are
        reported as ``lifespan.startup.failed`` and the server never
        starts accepting connections.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    for hook in self._startup_hooks:
                        await invoke(hook)
                except Exception as exc:
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    await invoke(hook)
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock. Raises
        ``ConfigurationError`` if the router rejects a rule pattern.
        """
        router = Router()
        register_rules(router, self.rules, self.forwarder)
        router.compile()
        self._router = router

        middleware_list = list(self._middleware_list)
        if self.config.access_log:
            middleware_list.insert(0, AccessLog())
        self._middleware = tuple(middleware_list)

        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register middleware and hooks before calling app.run()."
            )
            raise RuntimeError(msg)
