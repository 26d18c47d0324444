"""
Small helpers shared across the package.
"""

import inspect
from typing import Any, AsyncIterator, Iterable


async def resolve(value: Any) -> Any:
    """
    Await ``value`` if it is awaitable, otherwise return it unchanged.

    Handlers and middleware hooks may be plain functions or coroutines;
    every call site goes through this so both kinds compose freely.
    """
    if inspect.isawaitable(value):
        return await value
    return value


async def iterate_sync(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    """Expose a synchronous iterable of byte chunks as an async iterator."""
    for chunk in chunks:
        yield chunk
