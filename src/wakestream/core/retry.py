from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_found(result: object) -> bool:
    return result is not None


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    interval: float,
    predicate: Callable[[T], bool] = _is_found,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_attempt: Callable[[int], None] | None = None,
) -> T:
    """Run ``operation`` until ``predicate`` accepts its result.

    Waits ``interval`` seconds between attempts, never after the last one.
    Returns the accepted result, or the last result once attempts run out.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    result: T
    for attempt in range(1, attempts + 1):
        if on_attempt is not None:
            on_attempt(attempt)
        result = await operation()
        if predicate(result):
            return result
        if attempt < attempts:
            logger.debug(
                "Attempt %d/%d unsuccessful, retrying in %.1fs",
                attempt,
                attempts,
                interval,
            )
            await sleep(interval)
    return result
