"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups. ``load_config`` fills it from the optional
``server:`` section of the rule file.
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from relay.errors import ConfigurationError
from relay.rules import RouteTable, parse_rules, read_yaml


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(port=8080, upstream_timeout=30.0)
    """

    # Server: one fixed listener for the process lifetime
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False
    workers: int = 1

    # Upstream client
    upstream_timeout: float | None = None  # None = wait for the upstream indefinitely
    verify_tls: bool = True

    # Logging
    access_log: bool = True
    log_level: str = "info"
    log_format: str = "text"

    # Production settings
    max_connections: int = 1000
    keep_alive_timeout: float = 5.0


_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "host": (str,),
    "port": (int,),
    "debug": (bool,),
    "workers": (int,),
    "upstream_timeout": (int, float, type(None)),
    "verify_tls": (bool,),
    "access_log": (bool,),
    "log_level": (str,),
    "log_format": (str,),
    "max_connections": (int,),
    "keep_alive_timeout": (int, float),
}


def parse_server_section(data: Any, base: AppConfig | None = None) -> AppConfig:
    """Apply a ``server:`` mapping on top of *base*.

    Raises ``ConfigurationError`` for unknown keys or ill-typed values.
    """
    config = base or AppConfig()
    if data is None:
        return config
    if not isinstance(data, dict):
        msg = f"'server' must be a mapping, got {type(data).__name__}"
        raise ConfigurationError(msg)

    known = {f.name for f in fields(AppConfig)}
    overrides: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            msg = f"Unknown server setting {key!r}. Known settings: {', '.join(sorted(known))}"
            raise ConfigurationError(msg)
        expected = _FIELD_TYPES[key]
        # bool is an int subclass; keep the two apart
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
            msg = f"server.{key} has invalid value {value!r}"
            raise ConfigurationError(msg)
        overrides[key] = value
    return replace(config, **overrides)


def load_config(path: str | Path) -> tuple[AppConfig, RouteTable]:
    """Load server settings and the route table from one YAML file."""
    data = read_yaml(path)
    table = parse_rules(data)
    config = parse_server_section(data.get("server"))
    return config, table
