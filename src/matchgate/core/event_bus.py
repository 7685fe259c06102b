"""Async fan-out of engine signals to SSE streams.

The engine's SignalBus is synchronous and drained once per tick. The tick
runner forwards each drained Signal here, where every SSE client has its
own asyncio.Queue. Delivery is fire-and-forget: with no listeners the
signal is dropped, and a client whose queue is full misses it.

Usage:
    bus = EventBus()

    async with bus.subscribe("backfill.started") as sub:
        envelope = await sub.get(timeout=15)

    await bus.publish(signal)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from typing import Any

from matchgate.core.signals import Signal

logger = logging.getLogger(__name__)

Envelope = dict[str, Any]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[asyncio.Queue[Envelope]]] = defaultdict(list)
        self._wildcard_subscribers: list[asyncio.Queue[Envelope]] = []

    async def publish(self, signal: Signal) -> int:
        """Hand a signal to every matching queue. Returns how many accepted it."""
        envelope = signal.envelope()
        event_type = envelope["type"]
        count = 0

        for queue in [*self._subscribers.get(event_type, []), *self._wildcard_subscribers]:
            try:
                queue.put_nowait(envelope)
                count += 1
            except asyncio.QueueFull:
                logger.warning("event_dropped type=%s reason=slow_subscriber", event_type)

        return count

    def subscribe(self, event_type: str | None = None, max_size: int = 100) -> Subscription:
        """Subscribe to one signal type, or to all of them with None.

        Use the returned Subscription as an async context manager.
        """
        queue: asyncio.Queue[Envelope] = asyncio.Queue(maxsize=max_size)
        return Subscription(self, queue, event_type)

    def _register(self, queue: asyncio.Queue[Envelope], event_type: str | None) -> None:
        if event_type is None:
            self._wildcard_subscribers.append(queue)
        else:
            self._subscribers[event_type].append(queue)

    def _unregister(self, queue: asyncio.Queue[Envelope], event_type: str | None) -> None:
        if event_type is None:
            with contextlib.suppress(ValueError):
                self._wildcard_subscribers.remove(queue)
        else:
            with contextlib.suppress(ValueError):
                self._subscribers[event_type].remove(queue)

    @property
    def subscriber_count(self) -> int:
        typed = sum(len(subs) for subs in self._subscribers.values())
        return typed + len(self._wildcard_subscribers)


class Subscription:
    def __init__(
        self,
        bus: EventBus,
        queue: asyncio.Queue[Envelope],
        event_type: str | None,
    ) -> None:
        self._bus = bus
        self._queue = queue
        self._event_type = event_type

    async def __aenter__(self) -> Subscription:
        self._bus._register(self._queue, self._event_type)
        return self

    async def __aexit__(self, *args: object) -> None:
        self._bus._unregister(self._queue, self._event_type)

    async def get(self, timeout: float | None = None) -> Envelope | None:
        """Next envelope, or None if nothing arrives within ``timeout``."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None
