"""
Bounded request queue for rate-limited providers.

Runs at most `max_concurrent` work items at a time and spaces the *start*
of consecutive items by at least `min_start_interval` seconds. Items start
in submission order; completion order is whatever the provider gives us.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Set, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

WorkItem = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class QueueStats:
    pending: int
    active: int
    started: int
    completed: int
    failed: int


class BoundedRequestQueue:
    def __init__(
        self,
        max_concurrent: int = 5,
        min_start_interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if min_start_interval < 0:
            raise ValueError("min_start_interval cannot be negative")

        self.max_concurrent = max_concurrent
        self.min_start_interval = min_start_interval
        self._clock = clock

        self._pending: Deque[Tuple[WorkItem, asyncio.Future]] = deque()
        self._active = 0
        self._last_start: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._timer_loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()

        self._started = 0
        self._completed = 0
        self._failed = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def active_count(self) -> int:
        return self._active

    def stats(self) -> QueueStats:
        return QueueStats(
            pending=len(self._pending),
            active=self._active,
            started=self._started,
            completed=self._completed,
            failed=self._failed,
        )

    async def submit(self, work: Callable[[], Awaitable[T]]) -> T:
        """Queue a zero-argument coroutine factory and wait for its result."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._pending.append((work, future))
        self._pump()
        return await future

    # ------------------------------------------------------------------
    # ADMISSION
    # ------------------------------------------------------------------

    def _pump(self) -> None:
        while self._pending and self._active < self.max_concurrent:
            work, future = self._pending[0]
            if future.done():
                # Waiter went away before we got to it
                self._pending.popleft()
                continue

            now = self._clock()
            if self._last_start is not None:
                wait = self.min_start_interval - (now - self._last_start)
                if wait > 0:
                    self._schedule_pump(wait)
                    return

            self._pending.popleft()
            self._last_start = now
            self._active += 1
            self._started += 1

            task = asyncio.ensure_future(self._run(work, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _schedule_pump(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            if self._timer_loop is loop and not self._timer.cancelled():
                return
            # Left over from a loop that is gone; it will never fire
            self._timer.cancel()
        self._timer = loop.call_later(delay, self._on_timer)
        self._timer_loop = loop

    def _on_timer(self) -> None:
        self._timer = None
        self._timer_loop = None
        self._pump()

    async def _run(self, work: WorkItem, future: asyncio.Future) -> None:
        try:
            result = await work()
        except asyncio.CancelledError:
            self._failed += 1
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            self._failed += 1
            if not future.done():
                future.set_exception(exc)
        else:
            self._completed += 1
            if not future.done():
                future.set_result(result)
        finally:
            self._active -= 1
            self._pump()
