"""Best-effort writes to the external discovery record.

The listing that advertises a match (lobby attributes, a matchmaking
ticket, a server browser row) is owned elsewhere. The engine only mirrors
two facts onto it: whether the match is joinable, and whether it is
looking for backfill and for how many slots. Writes are fire-and-forget:
a failing record is logged and never surfaces to engine callers.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

JIP_ALLOWED = "JIP_ALLOWED"
BACKFILL_NEEDED = "BACKFILL_NEEDED"
BACKFILL_SLOTS = "BACKFILL_SLOTS"


class DiscoveryRecord(Protocol):
    def set_attribute(self, key: str, value: str) -> None: ...


class InMemoryDiscoveryRecord:
    """Discovery record kept in a dict, for tests and the status endpoint."""

    def __init__(self) -> None:
        self.attributes: dict[str, str] = {}
        self.writes: list[tuple[str, str]] = []

    def set_attribute(self, key: str, value: str) -> None:
        self.attributes[key] = value
        self.writes.append((key, value))


class DiscoveryPublisher:
    def __init__(self, record: DiscoveryRecord | None = None) -> None:
        self._record = record

    @property
    def record(self) -> DiscoveryRecord | None:
        return self._record

    def set_joinable(self, joinable: bool) -> None:
        self._write(JIP_ALLOWED, "1" if joinable else "0")

    def set_backfill_status(self, needs_backfill: bool, slots: int) -> None:
        self._write(BACKFILL_NEEDED, "1" if needs_backfill else "0")
        self._write(BACKFILL_SLOTS, str(slots if needs_backfill else 0))

    def _write(self, key: str, value: str) -> None:
        if self._record is None:
            return
        try:
            self._record.set_attribute(key, value)
        except Exception:  # Discovery writes are advisory
            logger.warning("discovery_write_failed key=%s value=%s", key, value, exc_info=True)
