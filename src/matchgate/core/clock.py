"""Time sources for the engine.

Every timestamp the engine records (match start, request creation, join
time, deferred due times) comes from one injected Clock. Production uses
MonotonicClock; tests drive ManualClock to move virtual time forward
without sleeping.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Seconds on a monotonic timeline."""
        ...


class MonotonicClock:
    """Wall-clock time via ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Virtual clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            msg = f"cannot move clock backwards by {seconds}"
            raise ValueError(msg)
        self._now += seconds
        return self._now

    def set(self, value: float) -> None:
        self._now = value
