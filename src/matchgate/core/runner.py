"""Periodic engine tick.

``tick_match`` is invoked by APScheduler every
``settings.matchgate_tick_interval_seconds``. It advances the engine
(deferred auto-backfill, expiry sweep, signal drain) and forwards the
drained signals to the EventBus for SSE clients.

Errors are logged but never propagated so the scheduler keeps running.
"""

from __future__ import annotations

import logging

from matchgate.core.engine import MatchAdmissionEngine
from matchgate.core.event_bus import EventBus

logger = logging.getLogger(__name__)


async def tick_match(engine: MatchAdmissionEngine, event_bus: EventBus) -> int:
    """Advance the engine one tick. Returns the number of signals forwarded."""
    try:
        signals = engine.tick()
    except Exception:  # Last-resort handler: the interval job must survive any engine error
        logger.exception("tick_match_failed")
        return 0

    for signal in signals:
        await event_bus.publish(signal)

    if signals:
        logger.debug("tick_match signals=%d", len(signals))
    return len(signals)
