"""Immutable, case-insensitive HTTP headers over raw ASGI pairs.

The forwarder copies ``items_all()`` upstream, so this type never merges,
reorders, or drops a pair. Names and values are decoded as latin-1 on
access only.
"""

from collections.abc import Iterator, Mapping


def _fold(name: str) -> bytes:
    return name.lower().encode("latin-1")


class Headers(Mapping[str, str]):
    """Ordered header multimap.

    Mapping access (``h["accept"]``, ``get``) yields the first value;
    ``get_list`` yields every value for one name; ``items_all`` yields
    every pair as received.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        object.__setattr__(self, "_raw", raw)

    def _values(self, key: str) -> Iterator[bytes]:
        folded = _fold(key)
        return (value for name, value in self._raw if name.lower() == folded)

    def __getitem__(self, key: str) -> str:
        for value in self._values(key):
            return value.decode("latin-1")
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and next(self._values(key), None) is not None

    def __iter__(self) -> Iterator[str]:
        names = dict.fromkeys(name.decode("latin-1").lower() for name, _ in self._raw)
        return iter(names)

    def __len__(self) -> int:
        return len({name.lower() for name, _ in self._raw})

    def __repr__(self) -> str:
        return f"Headers({self.items_all()!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        return next((v.decode("latin-1") for v in self._values(key)), default)

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*, in arrival order."""
        return [value.decode("latin-1") for value in self._values(key)]

    def items_all(self) -> list[tuple[str, str]]:
        """Return every ``(name, value)`` pair, duplicates included."""
        return [(name.decode("latin-1"), value.decode("latin-1")) for name, value in self._raw]

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """The raw byte pairs, exactly as the ASGI server delivered them."""
        return self._raw
