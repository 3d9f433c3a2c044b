"""Relay CLI — run the forwarder, list or validate its routes.

Entry point registered as ``relay`` in ``pyproject.toml``::

    [project.scripts]
    relay = "relay.cli:main"
"""

import argparse
import sys

DEFAULT_CONFIG = "config.yaml"


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to the YAML rule file (default: {DEFAULT_CONFIG})",
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``relay`` command."""
    parser = argparse.ArgumentParser(
        prog="relay",
        description="Relay — forward HTTP requests to upstreams by path rule.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- relay run --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Start the forwarding server")
    _add_config_argument(run_parser)
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    run_parser.add_argument(
        "--production",
        action="store_true",
        help="Run in production mode even if the config sets debug",
    )
    run_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker count (0=auto-detect, production only)",
    )

    # -- relay routes -----------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List forwarding routes")
    _add_config_argument(routes_parser)

    # -- relay check ------------------------------------------------------
    check_parser = subparsers.add_parser("check", help="Validate the rule file")
    _add_config_argument(check_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from relay.cli._run import run_server

        run_server(args)
    elif args.command == "routes":
        from relay.cli._routes import run_routes

        run_routes(args)
    elif args.command == "check":
        from relay.cli._check import run_check

        run_check(args)
