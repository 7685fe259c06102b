"""Synchronous signal queue for engine notifications.

The engine never calls observers while it is mutating state. Operations
``emit`` signals into a FIFO queue; the surrounding system calls ``drain()``
once per tick and every signal is delivered, in emission order, to the
handlers registered for its type plus wildcard handlers. A handler may call
back into the engine: anything it emits is appended and delivered later in
the same drain.

Usage:
    bus = SignalBus()
    with bus.subscribe(on_locked, SignalType.GAME_LOCKED):
        engine.lock()
        bus.drain()
"""

from __future__ import annotations

import contextlib
import logging
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class SignalType(str, Enum):
    PHASE_CHANGED = "phase.changed"
    PHASE_SYNC = "phase.sync"
    PLAYER_JOINED_IN_PROGRESS = "player.joined_in_progress"
    JOIN_DENIED = "join.denied"
    BACKFILL_STARTED = "backfill.started"
    BACKFILL_PLAYER_JOINED = "backfill.player_joined"
    BACKFILL_COMPLETED = "backfill.completed"
    BACKFILL_FAILED = "backfill.failed"
    BACKFILL_CANCELLED = "backfill.cancelled"
    GAME_LOCKED = "game.locked"
    GAME_UNLOCKED = "game.unlocked"


@dataclass(frozen=True)
class Signal:
    type: SignalType
    data: dict[str, Any] = field(default_factory=dict)

    def envelope(self) -> dict[str, Any]:
        return {"type": self.type.value, "data": self.data}


Handler = Callable[[Signal], None]


class SignalBus:
    def __init__(self) -> None:
        self._queue: deque[Signal] = deque()
        self._handlers: dict[SignalType, list[Handler]] = defaultdict(list)
        self._wildcard_handlers: list[Handler] = []

    def emit(self, signal_type: SignalType, **data: Any) -> Signal:
        signal = Signal(signal_type, data)
        self._queue.append(signal)
        return signal

    def subscribe(
        self, handler: Handler, signal_type: SignalType | None = None
    ) -> SignalSubscription:
        """Register a handler for one signal type (or every signal if None).

        The returned subscription unregisters on ``close()`` or when used as
        a context manager.
        """
        if signal_type is None:
            self._wildcard_handlers.append(handler)
        else:
            self._handlers[signal_type].append(handler)
        return SignalSubscription(self, handler, signal_type)

    def _unregister(self, handler: Handler, signal_type: SignalType | None) -> None:
        if signal_type is None:
            with contextlib.suppress(ValueError):
                self._wildcard_handlers.remove(handler)
        else:
            with contextlib.suppress(ValueError):
                self._handlers[signal_type].remove(handler)

    def drain(self) -> list[Signal]:
        """Deliver every queued signal. Returns the signals delivered, in order."""
        delivered: list[Signal] = []
        while self._queue:
            signal = self._queue.popleft()
            for handler in [*self._handlers.get(signal.type, []), *self._wildcard_handlers]:
                try:
                    handler(signal)
                except Exception:  # Observer failures are isolated from the engine and each other
                    logger.exception("signal_handler_failed type=%s", signal.type.value)
            delivered.append(signal)
        return delivered

    def clear(self) -> None:
        self._queue.clear()

    @property
    def pending(self) -> list[Signal]:
        return list(self._queue)

    @property
    def subscriber_count(self) -> int:
        typed = sum(len(handlers) for handlers in self._handlers.values())
        return typed + len(self._wildcard_handlers)


class SignalSubscription:
    def __init__(self, bus: SignalBus, handler: Handler, signal_type: SignalType | None) -> None:
        self._bus = bus
        self._handler = handler
        self._signal_type = signal_type
        self._active = True

    def close(self) -> None:
        if self._active:
            self._active = False
            self._bus._unregister(self._handler, self._signal_type)

    @property
    def active(self) -> bool:
        return self._active

    def __enter__(self) -> SignalSubscription:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
