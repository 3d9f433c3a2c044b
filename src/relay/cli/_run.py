"""``relay run`` — start the forwarding server.

Loads the rule file, compiles the routes, configures logging, and
starts either the development server (single worker, auto-reload) or
the production server.
"""

import argparse
import logging

from relay.cli._resolve import resolve_app

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Send relay's loggers to stderr at *level*."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def run_server(args: argparse.Namespace) -> None:
    """Start the relay server (dev or production mode).

    CLI flags override the ``server:`` section of the rule file.
    """
    app = resolve_app(args.config)
    configure_logging(app.config.log_level)

    host = args.host or app.config.host
    port = args.port or app.config.port

    logger = logging.getLogger("relay.server")
    for rule in app.rules:
        logger.info("Route %s", rule)

    if args.production or not app.config.debug:
        from relay.server.production import run_production_server

        run_production_server(
            app,
            host=host,
            port=port,
            workers=args.workers if args.workers is not None else app.config.workers,
            log_format=app.config.log_format,
            log_level=app.config.log_level,
            max_connections=app.config.max_connections,
            keep_alive_timeout=app.config.keep_alive_timeout,
        )
    else:
        from relay.server.dev import run_dev_server

        run_dev_server(app, host, port, reload=app.config.debug)
