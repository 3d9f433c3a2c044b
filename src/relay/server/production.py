"""Production server.

Starts a pounce server bound to one fixed host/port for the whole
process lifetime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relay.app import App


def run_production_server(
    app: App,
    host: str = "0.0.0.0",
    port: int = 5000,
    workers: int = 1,
    *,
    log_format: str = "text",
    log_level: str = "info",
    max_connections: int = 1000,
    keep_alive_timeout: float = 5.0,
) -> None:
    """Run a relay app under pounce in production mode.

    Args:
        app: Relay App instance.
        host: Bind address (default: 0.0.0.0 for all interfaces).
        port: Bind port (default: 5000).
        workers: Worker count (0 = auto-detect from CPU count).
        log_format: Log format ("json" or "text").
        log_level: Log level (debug, info, warning, error, critical).
        max_connections: Maximum concurrent connections.
        keep_alive_timeout: Keep-alive connection timeout (seconds).

    No request timeout is imposed at this layer; per-request deadlines
    belong to the upstream client (``AppConfig.upstream_timeout``).
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=workers,
        log_format=log_format,
        log_level=log_level,
        max_connections=max_connections,
        keep_alive_timeout=keep_alive_timeout,
    )

    server = Server(config, app)
    server.run()
