"""Relay — a rule-driven HTTP forwarding engine.

Matches each inbound request against a static table of path rules and
streams it to the rule's upstream, then streams the answer back.

Basic usage::

    from relay import App

    app = App.from_file("config.yaml")
    app.run()

with ``config.yaml``::

    routes:
      - from: /api/*
        to: http://upstream:8080
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "Forwarder",
    "HTTPError",
    "MethodNotAllowed",
    "NotFound",
    "RelayError",
    "Request",
    "Response",
    "RouteTable",
    "Rule",
    "StreamingResponse",
    "UpstreamRequestError",
    "UpstreamUnavailable",
    "load_config",
    "load_rules",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import relay`` fast while providing a clean top-level API.
    """
    if name == "App":
        from relay.app import App

        return App

    if name in ("AppConfig", "load_config"):
        from relay import config as _config

        return getattr(_config, name)

    if name in ("Rule", "RouteTable", "load_rules"):
        from relay import rules as _rules

        return getattr(_rules, name)

    if name == "Forwarder":
        from relay.forwarding import Forwarder

        return Forwarder

    if name == "Request":
        from relay.http.request import Request

        return Request

    if name in ("Response", "StreamingResponse"):
        from relay.http import response as _resp

        return getattr(_resp, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "RelayError",
        "UpstreamRequestError",
        "UpstreamUnavailable",
    ):
        from relay import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
