"""Bounded-concurrency helpers."""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    concurrency: int,
    mapper: Callable[[T], Awaitable[R]],
) -> List[R]:
    """Run ``mapper`` over items with at most ``concurrency`` in flight.

    A fixed pool of workers pulls the next index from a shared cursor, so a
    free worker always takes the next pending item. ``results[i]`` always
    corresponds to ``items[i]`` regardless of completion order.

    If a mapper raises, the remaining workers are cancelled and the first
    exception is re-raised.
    """
    results: List[Optional[R]] = [None] * len(items)
    if not items:
        return results  # type: ignore[return-value]
    cursor = iter(range(len(items)))

    async def worker() -> None:
        for index in cursor:
            results[index] = await mapper(items[index])

    worker_count = min(max(concurrency, 1), len(items))
    workers = [asyncio.ensure_future(worker()) for _ in range(worker_count)]
    try:
        done, _ = await asyncio.wait(workers, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in workers:
            if not task.done():
                task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    for task in done:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return results  # type: ignore[return-value]
