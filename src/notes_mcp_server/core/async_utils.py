"""Async utilities for bridging blocking HTTP calls to async callers."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


def make_semaphore(max_parallel: int = 4) -> asyncio.Semaphore:
    """Create the semaphore that bounds concurrent remote requests."""
    logger.debug(
        "Remote request semaphore created: max_parallel=%d", max_parallel
    )
    return asyncio.Semaphore(max_parallel)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In MCP tool handler:
        notes = await run_sync(client.list_notes, last_sync)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    semaphore: asyncio.Semaphore | None,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run a synchronous function in a thread pool, bounded by *semaphore*.

    Runs unbounded when *semaphore* is None.

    Args:
        semaphore: Semaphore shared by the calls to bound.
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    if semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Run coroutines concurrently and collect results in input order.

    Each coroutine should use run_sync_limited internally. Exceptions
    propagate from the first failure, so coroutines that must not abort
    their siblings have to handle their own errors.

    Args:
        coros: Sequence of coroutines to run concurrently.

    Returns:
        List of results in the same order as input coroutines.
    """
    return list(await asyncio.gather(*coros))
