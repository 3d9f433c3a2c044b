"""Forwarding rules and the route table.

A rule maps an inbound path pattern to an upstream base address. The
table keeps rules in file order and never changes after loading.

Rule file format::

    routes:
      - from: /api/*
        to: http://upstream:8080
      - from: /static/*
        to: http://cdn.internal
"""

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, overload

import yaml

from relay.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Rule:
    """One forwarding rule. ``source`` is ``from``, ``target`` is ``to``.

    ``target`` is used as-is: the request path is appended literally.
    """

    source: str
    target: str

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"


class RouteTable(Sequence[Rule]):
    """An immutable, ordered collection of rules."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Sequence[Rule] = ()) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)

    @overload
    def __getitem__(self, index: int) -> Rule: ...
    @overload
    def __getitem__(self, index: slice) -> "RouteTable": ...
    def __getitem__(self, index: int | slice) -> "Rule | RouteTable":
        if isinstance(index, slice):
            return RouteTable(self._rules[index])
        return self._rules[index]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RouteTable):
            return NotImplemented
        return self._rules == other._rules

    def __hash__(self) -> int:
        return hash(self._rules)

    def __repr__(self) -> str:
        return f"RouteTable({list(self._rules)!r})"


def _parse_rule(index: int, record: Any) -> Rule:
    if not isinstance(record, Mapping):
        msg = f"routes[{index}] must be a mapping with 'from' and 'to', got {type(record).__name__}"
        raise ConfigurationError(msg)
    fields: dict[str, str] = {}
    for key in ("from", "to"):
        value = record.get(key)
        if not isinstance(value, str) or not value.strip():
            msg = f"routes[{index}].{key} must be a non-empty string, got {value!r}"
            raise ConfigurationError(msg)
        fields[key] = value
    return Rule(source=fields["from"], target=fields["to"])


def parse_rules(data: Any) -> RouteTable:
    """Validate already-parsed config data and build the route table.

    Accepts the top-level mapping of the rule file. Raises
    ``ConfigurationError`` if the structure is wrong.
    """
    if not isinstance(data, Mapping):
        msg = "Config root must be a mapping with a 'routes' list"
        raise ConfigurationError(msg)
    routes = data.get("routes")
    if routes is None:
        msg = "Config is missing the 'routes' list"
        raise ConfigurationError(msg)
    if not isinstance(routes, list):
        msg = f"'routes' must be a list, got {type(routes).__name__}"
        raise ConfigurationError(msg)
    return RouteTable([_parse_rule(i, record) for i, record in enumerate(routes)])


def read_yaml(path: str | Path) -> Any:
    """Read and parse a YAML file, mapping every failure to ``ConfigurationError``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read config file {str(path)!r}: {exc}"
        raise ConfigurationError(msg) from exc
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Cannot parse config file {str(path)!r}: {exc}"
        raise ConfigurationError(msg) from exc


def load_rules(path: str | Path) -> RouteTable:
    """Load the route table from a YAML rule file."""
    return parse_rules(read_yaml(path))
