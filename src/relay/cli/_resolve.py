"""App resolution — builds a frozen App from a rule file for CLI commands.

Shared by ``relay run``, ``relay routes``, and ``relay check``. Any
startup error is printed and turned into exit status 1 before a
listener is ever bound.
"""

import sys

from relay.app import App
from relay.errors import ConfigurationError


def resolve_app(config_path: str) -> App:
    """Load *config_path*, compile its routes, and return the App.

    Exits with status 1 on ``ConfigurationError``.
    """
    try:
        app = App.from_file(config_path)
        app._ensure_frozen()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    return app
