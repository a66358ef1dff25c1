"""Fixed-size wave execution for async workers.

Responsibilities:
- Run a worker over consecutive windows of items, one window at a time.
- Let every item of a window settle before the next window starts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

_Item = TypeVar("_Item")
_Result = TypeVar("_Result")


async def run_in_batches(
    items: Sequence[_Item],
    batch_size: int,
    worker: Callable[[_Item], Awaitable[_Result]],
) -> list[_Result | BaseException]:
    """Run `worker` over `items` in waves of at most `batch_size` concurrent calls.

    A slow item delays the next wave; that bound on parallelism is intended.
    Worker exceptions are returned in place of results instead of aborting
    siblings, so the caller decides how to treat them.

    Returns:
        One result (or exception) per item, in input order.

    Raises:
        ValueError: If `batch_size` is not positive.
    """

    if batch_size < 1:
        raise ValueError("`batch_size` must be a positive integer.")

    results: list[_Result | BaseException] = []
    for start in range(0, len(items), batch_size):
        window = items[start : start + batch_size]
        settled = await asyncio.gather(
            *(worker(item) for item in window),
            return_exceptions=True,
        )
        results.extend(settled)
    return results
