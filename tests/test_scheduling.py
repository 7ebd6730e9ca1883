from __future__ import annotations

import asyncio

import pytest

from elementaryCA.scheduling import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_runs_in_due_order() -> None:
    clock = ManualScheduler()
    calls = []
    clock.call_later(30, lambda: calls.append("c"))
    clock.call_later(10, lambda: calls.append("a"))
    clock.call_later(10, lambda: calls.append("b"))
    assert clock.advance(20) == 2
    assert calls == ["a", "b"]
    assert clock.now == 20
    assert clock.pending == 1
    clock.advance(10)
    assert calls == ["a", "b", "c"]


def test_manual_scheduler_cancel() -> None:
    clock = ManualScheduler()
    calls = []
    handle = clock.call_later(5, lambda: calls.append(1))
    handle.cancel()
    assert clock.pending == 0
    assert clock.run_until_idle() == 0
    assert calls == []


def test_manual_scheduler_callbacks_can_reschedule() -> None:
    clock = ManualScheduler()
    ticks = []

    def tick() -> None:
        ticks.append(clock.now)
        if len(ticks) < 3:
            clock.call_later(10, tick)

    clock.call_later(10, tick)
    clock.run_until_idle()
    assert ticks == [10, 20, 30]


def test_negative_delay_rejected() -> None:
    with pytest.raises(ValueError):
        ManualScheduler().call_later(-1, lambda: None)


def test_asyncio_scheduler_fires_and_cancels() -> None:
    async def run():
        scheduler = AsyncioScheduler()
        fired = []
        scheduler.call_later(1, lambda: fired.append("kept"))
        scheduler.call_later(1, lambda: fired.append("dropped")).cancel()
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(run()) == ["kept"]
