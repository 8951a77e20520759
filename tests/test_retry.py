from __future__ import annotations

import asyncio

import pytest
from fakes import no_sleep

from wakestream.core import retry_with_backoff


def test_returns_first_accepted_result():
    results = iter([None, None, "found", "later"])
    calls = []

    async def operation():
        calls.append(1)
        return next(results)

    assert asyncio.run(retry_with_backoff(operation, 5, 1.0, sleep=no_sleep)) == "found"
    assert len(calls) == 3


def test_returns_last_result_when_exhausted():
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    async def operation():
        return 0

    result = asyncio.run(
        retry_with_backoff(
            operation, 4, 2.5, predicate=lambda value: value > 0, sleep=fake_sleep
        )
    )
    assert result == 0
    assert sleeps == [2.5, 2.5, 2.5]


def test_rejects_zero_attempts():
    async def operation():
        return None

    with pytest.raises(ValueError):
        asyncio.run(retry_with_backoff(operation, 0, 1.0))
