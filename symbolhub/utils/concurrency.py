"""
Bounded fan-out.

Opening files, scheduling reference follow-ups and sending the initial
symbol requests all run many independent awaits at once. They go through
``execute_in_parallel`` so at most ``max_concurrent`` are in flight:

  item 1 ┐
  item 2 ├→ semaphore window → results in input order
  item 3 ┘
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def execute_in_parallel(
    items: Iterable[T],
    executor_func: Callable[[T], Awaitable[R]],
    max_concurrent: int = 100,
    label: str = "task",
) -> list[R | Exception]:
    """
    Run ``executor_func`` over ``items`` with at most ``max_concurrent``
    calls in flight.

    Returns results in the same order as ``items``. A call that raises
    contributes its exception object instead of a result, so one failure
    never hides the other results.
    """
    items = list(items)
    if not items:
        return []

    semaphore = asyncio.Semaphore(max(1, max_concurrent))

    async def execute_with_semaphore(item: T, index: int) -> tuple[int, R | Exception]:
        async with semaphore:
            try:
                return (index, await executor_func(item))
            except Exception as e:
                logger.warning("[parallel] %s %d failed: %s", label, index, e)
                return (index, e)

    start = datetime.now()
    results_with_indices = await asyncio.gather(
        *(execute_with_semaphore(item, i) for i, item in enumerate(items))
    )
    elapsed = (datetime.now() - start).total_seconds()
    if len(items) > 1:
        logger.info(
            "[parallel] %d %ss completed in %.2fs (max=%d)",
            len(items), label, elapsed, max_concurrent,
        )

    results_with_indices.sort(key=lambda x: x[0])
    return [r for _, r in results_with_indices]
