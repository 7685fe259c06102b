"""Clock-driven deferred callbacks.

The engine never sleeps. Work that must happen later (the debounced
auto-backfill) is registered here with a due time on the engine's Clock and
run by ``run_due()`` from the periodic tick. Each scheduled callback returns
a DeferredTask that doubles as its cancellation token.

Usage:
    scheduler = DeferredScheduler(clock)
    task = scheduler.call_later(5.0, fire, name="auto_backfill")
    ...
    task.cancel()          # or let it run
    scheduler.run_due()    # once per tick
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from matchgate.core.clock import Clock

logger = logging.getLogger(__name__)


@dataclass(order=True)
class DeferredTask:
    """A scheduled callback. Ordered by due time, then scheduling order."""

    due_at: float
    seq: int
    callback: Callable[[], None] = field(compare=False, repr=False)
    name: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)
    done: bool = field(default=False, compare=False)

    def cancel(self) -> bool:
        """Cancel the task. Returns False if it already ran or was cancelled."""
        if self.done or self.cancelled:
            return False
        self.cancelled = True
        return True

    @property
    def pending(self) -> bool:
        return not (self.done or self.cancelled)


class DeferredScheduler:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._heap: list[DeferredTask] = []
        self._counter = itertools.count()

    def call_later(
        self, delay: float, callback: Callable[[], None], name: str = ""
    ) -> DeferredTask:
        task = DeferredTask(
            due_at=self._clock.now() + max(0.0, delay),
            seq=next(self._counter),
            callback=callback,
            name=name,
        )
        heapq.heappush(self._heap, task)
        return task

    def run_due(self) -> int:
        """Run every pending task whose due time has passed. Returns how many ran.

        A failing callback is logged and does not stop later tasks.
        """
        now = self._clock.now()
        ran = 0
        while self._heap and self._heap[0].due_at <= now:
            task = heapq.heappop(self._heap)
            if task.cancelled:
                continue
            task.done = True
            try:
                task.callback()
            except Exception:  # Callback failures must not stall the tick
                logger.exception("deferred_task_failed name=%s", task.name)
            ran += 1
        return ran

    def cancel_all(self) -> int:
        count = 0
        for task in self._heap:
            if task.cancel():
                count += 1
        self._heap.clear()
        return count

    @property
    def pending(self) -> list[DeferredTask]:
        """Live tasks in the order they will fire."""
        return sorted(t for t in self._heap if t.pending)
