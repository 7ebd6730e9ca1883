"""Tick schedulers driving the automaton clock.

Both schedulers are single-threaded: callbacks run one at a time on the
caller's loop, never concurrently with engine operations.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, List, Optional, Protocol, Tuple


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""


class Scheduler(Protocol):
    """Minimal timer protocol used by `ElementaryAutomaton`."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms`` milliseconds."""


class AsyncioScheduler:
    """Schedules ticks on an asyncio event loop.

    The loop is looked up lazily so the scheduler can be created outside a
    running loop and used once one is running.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        return self.loop.call_later(delay_ms / 1000.0, callback)


class ManualHandle:
    def __init__(self, due: float):
        self.due = due
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock; time only moves when `advance` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, ManualHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ManualHandle:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        handle = ManualHandle(self.now + delay_ms)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h, _ in self._queue if not h.cancelled)

    def _pop_next(self, until: Optional[float]) -> Optional[Tuple[ManualHandle, Callable[[], None]]]:
        while self._queue:
            due, _, handle, callback = self._queue[0]
            if handle.cancelled:
                heapq.heappop(self._queue)
                continue
            if until is not None and due > until:
                return None
            heapq.heappop(self._queue)
            self.now = max(self.now, due)
            return handle, callback
        return None

    def advance(self, ms: float) -> int:
        """Move the clock forward by ``ms`` and run every callback that falls due.

        Returns:
            int: Number of callbacks run.
        """
        until = self.now + ms
        ran = 0
        while True:
            nxt = self._pop_next(until)
            if nxt is None:
                break
            nxt[1]()
            ran += 1
        self.now = until
        return ran

    def run_until_idle(self, max_callbacks: int = 100_000) -> int:
        """Run callbacks in due order until none are pending."""
        ran = 0
        while ran < max_callbacks:
            nxt = self._pop_next(None)
            if nxt is None:
                break
            nxt[1]()
            ran += 1
        return ran


__all__ = ["AsyncioScheduler", "ManualHandle", "ManualScheduler", "Scheduler", "TimerHandle"]
