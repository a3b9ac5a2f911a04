"""Bounded worker pool over asyncio tasks.

Workers share one cursor: each claims the next index until the list is
exhausted, so no item is processed twice and at most ``concurrency`` items are
in flight at any time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from repomap.logging import get_logger

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 8

_MISSING: Any = object()
logger = get_logger("parallel")


async def _run_pool(
    items: Sequence[T],
    fn: Callable[[T, int], Awaitable[R]],
    concurrency: int,
    results: list[Any],
    safe: bool,
) -> None:
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            if safe:
                try:
                    results[index] = await fn(items[index], index)
                except Exception as exc:
                    logger.debug("parallel item %s failed: %s", index, exc)
            else:
                results[index] = await fn(items[index], index)

    worker_count = min(max(1, concurrency), len(items))
    await asyncio.gather(*(worker() for _ in range(worker_count)))


async def parallel_map(
    items: Sequence[T],
    fn: Callable[[T, int], Awaitable[R]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    results: list[Any] = [_MISSING] * len(items)
    if items:
        await _run_pool(items, fn, concurrency, results, safe=False)
    return results


async def parallel_map_safe(
    items: Sequence[T],
    fn: Callable[[T, int], Awaitable[R]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Like :func:`parallel_map`, but failed items are dropped from the result."""
    results: list[Any] = [_MISSING] * len(items)
    if items:
        await _run_pool(items, fn, concurrency, results, safe=True)
    return [item for item in results if item is not _MISSING]


async def batch_process(
    items: Sequence[T],
    fn: Callable[[list[T]], Awaitable[list[R]]],
    batch_size: int = 50,
) -> list[R]:
    results: list[R] = []
    for start in range(0, len(items), batch_size):
        batch = list(items[start : start + batch_size])
        results.extend(await fn(batch))
    return results
