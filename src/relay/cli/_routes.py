"""``relay routes`` — list forwarding routes.

Prints the methods every rule accepts, then one row per rule with its
``from`` pattern and ``to`` base address, in file order.
"""

import argparse

from relay.cli._resolve import resolve_app
from relay.registrar import FORWARD_METHODS


def run_routes(args: argparse.Namespace) -> None:
    """List the forwarding routes compiled from ``args.config``."""
    app = resolve_app(args.config)

    if not app.rules:
        print("No routes registered.")
        return

    rows = [(rule.source, rule.target) for rule in app.rules]
    max_path = max(max(len(path) for path, _ in rows), 4)  # "FROM" header

    fmt = f"{{:<{max_path}}}  {{}}"
    print(f"METHODS: {', '.join(FORWARD_METHODS)}")
    print(fmt.format("FROM", "TO"))
    sep_len = max_path + 2 + max(len(target) for _, target in rows)
    print("-" * min(sep_len, 80))
    for path, target in rows:
        print(fmt.format(path, target))
