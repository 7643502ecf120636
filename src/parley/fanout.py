"""Best-effort concurrent fan-out."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable

from loguru import logger

DEFAULT_CONCURRENCY = 8


async def collect_successes[T, R](
    items: Iterable[T],
    fetch: Callable[[T], Awaitable[R]],
    *,
    limit: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Run ``fetch`` for every item and keep only the results that succeeded.

    Failures are dropped on purpose: callers get a partial result set, not
    one result per input. At most ``limit`` fetches run at once. Successful
    results keep the input order. Cancellation is never dropped.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await fetch(item)

    outcomes = await asyncio.gather(*(run(item) for item in items), return_exceptions=True)
    results: list[R] = []
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            logger.debug("fanout.drop error={!r}", outcome)
            continue
        if isinstance(outcome, BaseException):
            raise outcome
        results.append(outcome)
    return results
