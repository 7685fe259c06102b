"""Debounced backfill on player departure.

When a player leaves, the slot is not advertised straight away: the player
may be reconnecting. A single-slot request is scheduled ``delay_seconds``
later on the DeferredScheduler. Another departure inside that window
restarts the delay. When the task fires it re-checks headroom and admission
policy against the state at that moment; a trigger scheduled before a lock
or before the match refilled does nothing. Replicas only count departures.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from matchgate.core.deferred import DeferredScheduler, DeferredTask
from matchgate.core.ledger import AdmissionGate, BackfillLedger
from matchgate.core.occupancy import Occupancy
from matchgate.models.backfill import BackfillConfig, BackfillRequest

logger = logging.getLogger(__name__)


class AutoBackfillTrigger:
    def __init__(
        self,
        scheduler: DeferredScheduler,
        ledger: BackfillLedger,
        occupancy: Occupancy,
        gate: AdmissionGate,
        config: Callable[[], BackfillConfig],
        is_authority: Callable[[], bool] = lambda: True,
    ) -> None:
        self._scheduler = scheduler
        self._ledger = ledger
        self._occupancy = occupancy
        self._gate = gate
        self._config = config
        self._is_authority = is_authority
        self._pending: DeferredTask | None = None
        self._preferred_team: int | None = None

    @property
    def pending(self) -> DeferredTask | None:
        if self._pending is not None and not self._pending.pending:
            self._pending = None
        return self._pending

    def on_departure(self, candidate_id: str, team: int | None = None) -> bool:
        """Record a departure and maybe schedule a backfill.

        Returns True if a backfill was scheduled.
        """
        self._occupancy.remove(team)
        config = self._config()
        logger.info(
            "player_left candidate=%s team=%s players=%d/%d",
            candidate_id,
            team,
            self._occupancy.current_players,
            self._occupancy.max_players,
        )

        if not config.auto_backfill or not self._is_authority():
            return False
        if self._occupancy.current_players < config.min_players:
            logger.debug(
                "auto_backfill_skip players=%d min=%d",
                self._occupancy.current_players,
                config.min_players,
            )
            return False
        if self._ledger.is_active:
            return False

        self.cancel()
        self._preferred_team = team if team is not None and team >= 0 else None
        self._pending = self._scheduler.call_later(
            config.delay_seconds, self._fire, name="auto_backfill"
        )
        logger.info("auto_backfill_scheduled delay=%.1fs team=%s", config.delay_seconds, team)
        return True

    def cancel(self) -> bool:
        task = self._pending
        self._pending = None
        return task is not None and task.cancel()

    def _fire(self) -> BackfillRequest | None:
        self._pending = None
        if not self._is_authority():
            logger.info("auto_backfill_stale reason=replica")
            return None
        if self._occupancy.available_slots <= 0:
            logger.info("auto_backfill_stale reason=full")
            return None
        result = self._gate()
        if not result.allowed:
            logger.info("auto_backfill_stale reason=%s", result.value)
            return None
        return self._ledger.request(1, preferred_team=self._preferred_team)
