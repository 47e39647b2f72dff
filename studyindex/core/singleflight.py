"""Single-flight coalescing of asynchronous operations.

Every network-backed lookup in the engine goes through
:func:`single_flight`: while an operation for a key is running, further
callers await that same operation instead of starting a duplicate. The
pending entry is dropped as soon as the operation settles, so failures are
never cached.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable, MutableMapping
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def single_flight(
    key: Hashable,
    pending: MutableMapping[Any, asyncio.Task],
    factory: Callable[[], Awaitable[T]],
) -> T:
    """Run ``factory`` once per key at a time.

    Args:
        key: Coalescing key
        pending: Map of in-flight tasks, owned by the caller
        factory: Zero-argument coroutine function producing the result

    Returns:
        Result of the shared operation

    Raises:
        Whatever the shared operation raised
    """
    task = pending.get(key)
    if task is not None:
        logger.debug("Joining in-flight operation for %r", key)
        return await asyncio.shield(task)

    async def run() -> T:
        try:
            return await factory()
        finally:
            if pending.get(key) is task:
                del pending[key]

    task = asyncio.ensure_future(run())
    pending[key] = task
    return await asyncio.shield(task)


async def cancel_pending(pending: MutableMapping[Any, asyncio.Task]) -> None:
    """Cancel every in-flight operation in a pending map and wait for it to unwind."""
    tasks = list(pending.values())
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
    # Tasks cancelled before their first step never reach their own cleanup
    for key, task in list(pending.items()):
        if task in tasks:
            del pending[key]
