"""Development server.

Starts a pounce ASGI server with the live relay App object in
single-worker mode with auto-reload.
"""


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = True,
) -> None:
    """Start a pounce dev server with the given relay App.

    Pounce's ``run()`` takes an import string, but relay has a live
    ``App`` object built from a rule file, so ``pounce.Server`` is used
    directly with the ASGI callable.

    Args:
        app: ASGI callable (relay App instance).
        host: Bind host address.
        port: Bind port number.
        reload: Enable auto-reload on file changes (default True).
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1,
        reload=reload,
    )
    server = Server(config, app)
    server.run()
