from __future__ import annotations

import asyncio
import logging

import pytest

from wakestream.core import PeriodicTask


def test_periodic_task_stops_for_good():
    ticks: list[int] = []

    async def scenario():
        task = PeriodicTask(lambda: ticks.append(1), 0.005, name="test")
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()
        stopped_at = len(ticks)
        await asyncio.sleep(0.03)
        return task, stopped_at

    task, stopped_at = asyncio.run(scenario())
    assert stopped_at > 0
    assert len(ticks) == stopped_at
    assert not task.running


def test_periodic_task_survives_failing_callback(caplog):
    ticks: list[int] = []

    def callback():
        ticks.append(1)
        raise RuntimeError("boom")

    async def scenario():
        task = PeriodicTask(callback, 0.005, name="flaky")
        task.start()
        await asyncio.sleep(0.04)
        await task.stop()

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    assert len(ticks) > 1
    assert "flaky tick failed" in caplog.text


def test_periodic_task_can_stop_itself():
    ticks: list[int] = []

    async def scenario():
        async def callback():
            ticks.append(1)
            await task.stop()

        task = PeriodicTask(callback, 0.005)
        task.start()
        await asyncio.sleep(0.05)
        return task

    task = asyncio.run(scenario())
    assert ticks == [1]
    assert not task.running


def test_periodic_task_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        PeriodicTask(lambda: None, 0)
