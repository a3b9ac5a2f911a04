from __future__ import annotations

import asyncio

import pytest

from repomap.parallel import batch_process, parallel_map, parallel_map_safe


def test_results_keep_input_order_under_bounded_concurrency() -> None:
    in_flight = 0
    peak = 0

    async def work(item: int, index: int) -> tuple[int, int]:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001 * (10 - item % 10))
        in_flight -= 1
        return index, item * 2

    results = asyncio.run(parallel_map(list(range(25)), work, concurrency=3))

    assert results == [(index, index * 2) for index in range(25)]
    assert peak <= 3


def test_empty_input() -> None:
    async def work(item: int, index: int) -> int:
        return item

    assert asyncio.run(parallel_map([], work)) == []
    assert asyncio.run(parallel_map_safe([], work)) == []


def test_failure_propagates() -> None:
    async def work(item: int, index: int) -> int:
        if item == 3:
            raise ValueError("bad item")
        return item

    with pytest.raises(ValueError):
        asyncio.run(parallel_map(list(range(5)), work, concurrency=2))


def test_safe_variant_drops_failures() -> None:
    async def work(item: int, index: int) -> int:
        if item % 2:
            raise ValueError(item)
        return item

    assert asyncio.run(parallel_map_safe(list(range(7)), work, concurrency=2)) == [0, 2, 4, 6]


def test_batches() -> None:
    seen: list[list[int]] = []

    async def handle(batch: list[int]) -> list[int]:
        seen.append(batch)
        return [item + 1 for item in batch]

    assert asyncio.run(batch_process(list(range(5)), handle, batch_size=2)) == [1, 2, 3, 4, 5]
    assert seen == [[0, 1], [2, 3], [4]]
