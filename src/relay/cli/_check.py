"""``relay check`` — validate a rule file without serving."""

import argparse

from relay.cli._resolve import resolve_app


def run_check(args: argparse.Namespace) -> None:
    """Load and compile ``args.config``; exit 1 on any error."""
    app = resolve_app(args.config)
    count = len(app.rules)
    print(f"OK: {count} rule{'s' if count != 1 else ''} in {args.config}")
