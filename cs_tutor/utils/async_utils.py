"""
Helpers for calling blocking code from async handlers.

SQLAlchemy sessions here are synchronous, so store work runs on the
default thread pool while the event loop keeps serving other requests.
"""

import asyncio
import functools
from typing import Any, Callable, TypeVar


T = TypeVar("T")


async def run_blocking(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run `fn(*args, **kwargs)` in the default executor and await it."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))
