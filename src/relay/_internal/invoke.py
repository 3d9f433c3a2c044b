"""Invoke helpers — call sync or async hooks uniformly.

Startup and shutdown hooks can be ``def`` or ``async def``. The
sync/async check lives here so the app and the test client agree.
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
