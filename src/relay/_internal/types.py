"""Shared type aliases used across relay modules."""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from relay.http.request import Request

# Route handler: receives the matched request, returns a response
Handler: TypeAlias = Callable[["Request"], Awaitable[Any]]

# Lifecycle hook: sync or async, no arguments
Hook: TypeAlias = Callable[[], Any]
