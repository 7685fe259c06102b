"""Match admission engine: the facade the match/session object owns.

Composes PhaseController, the admission policy, team balancing, the
backfill ledger, the auto-backfill trigger and the join history around one
Clock and one SignalBus. There is no global instance: construct one per
match and pass it to whatever needs it.

All mutation is synchronous and single-threaded. The only deferred work is
the auto-backfill trigger, which runs from ``tick()``. ``tick()`` also
sweeps backfill expiry and drains queued signals to observers, so the
surrounding system should call it regularly (the FastAPI app does so from
an APScheduler interval job).

Usage:
    engine = MatchAdmissionEngine.from_settings(settings, discovery_record=record)
    engine.set_phase(GamePhase.IN_PROGRESS)
    record = engine.process_join_in_progress("p-1", "Ana")
    engine.tick()
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping
from typing import Any

from matchgate.config import Settings
from matchgate.core import admission
from matchgate.core.admission import BanCheck
from matchgate.core.auto_backfill import AutoBackfillTrigger
from matchgate.core.balance import assign_team
from matchgate.core.clock import Clock, MonotonicClock
from matchgate.core.deferred import DeferredScheduler
from matchgate.core.discovery import DiscoveryPublisher, DiscoveryRecord
from matchgate.core.history import JoinHistory
from matchgate.core.ledger import BackfillLedger
from matchgate.core.occupancy import Occupancy
from matchgate.core.phase import PhaseController, PhaseSyncSink
from matchgate.core.signals import Handler, Signal, SignalBus, SignalSubscription, SignalType
from matchgate.core.spawn import choose_spawn
from matchgate.models.admission import AdmissionConfig, AdmissionState
from matchgate.models.backfill import BackfillConfig, BackfillRequest
from matchgate.models.join import JoinRecord, SpawnConfig, SpawnPoint
from matchgate.models.match import GamePhase, JoinResult, PhaseSyncMessage

logger = logging.getLogger(__name__)


class MatchAdmissionEngine:
    def __init__(
        self,
        admission_config: AdmissionConfig | None = None,
        backfill_config: BackfillConfig | None = None,
        spawn_config: SpawnConfig | None = None,
        max_players: int = 8,
        history_limit: int = 1000,
        clock: Clock | None = None,
        discovery_record: DiscoveryRecord | None = None,
        ban_check: BanCheck | None = None,
        phase_sync_sink: PhaseSyncSink | None = None,
        is_authority: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        self._admission_config = admission_config or AdmissionConfig()
        self._backfill_config = backfill_config or BackfillConfig()
        self._spawn_config = spawn_config or SpawnConfig()
        self._clock = clock or MonotonicClock()
        self._ban_check = ban_check
        self._rng = rng or random.Random()

        self.signals = SignalBus()
        self.discovery = DiscoveryPublisher(discovery_record)
        self.scheduler = DeferredScheduler(self._clock)
        self.occupancy = Occupancy(max_players=max_players)
        self.history = JoinHistory(history_limit)
        self.ledger = BackfillLedger(
            clock=self._clock,
            signals=self.signals,
            discovery=self.discovery,
            gate=self.can_join_in_progress,
            timeout_seconds=self._backfill_config.timeout_seconds,
        )
        self.auto_backfill = AutoBackfillTrigger(
            scheduler=self.scheduler,
            ledger=self.ledger,
            occupancy=self.occupancy,
            gate=self.can_join_in_progress,
            config=lambda: self._backfill_config,
            is_authority=lambda: self.is_authority,
        )
        self.phase_controller = PhaseController(
            clock=self._clock,
            signals=self.signals,
            discovery=self.discovery,
            ledger=self.ledger,
            lock_after_start=self._admission_config.lock_after_start,
            is_authority=is_authority,
            sync_sink=phase_sync_sink,
            on_lock=self.auto_backfill.cancel,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **collaborators: Any) -> MatchAdmissionEngine:
        """Build an engine from Settings. Collaborators (clock, discovery_record,
        ban_check, phase_sync_sink, rng) are passed through."""
        return cls(
            admission_config=settings.admission_config(),
            backfill_config=settings.backfill_config(),
            spawn_config=settings.spawn_config(),
            max_players=settings.matchgate_max_players,
            history_limit=settings.matchgate_history_limit,
            is_authority=settings.matchgate_is_authority,
            **collaborators,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def is_authority(self) -> bool:
        return self.phase_controller.is_authority

    @property
    def phase(self) -> GamePhase:
        return self.phase_controller.phase

    @property
    def is_locked(self) -> bool:
        return self.phase_controller.locked

    @property
    def admission_config(self) -> AdmissionConfig:
        return self._admission_config

    @property
    def backfill_config(self) -> BackfillConfig:
        return self._backfill_config

    @property
    def spawn_config(self) -> SpawnConfig:
        return self._spawn_config

    @property
    def active_backfill(self) -> BackfillRequest | None:
        return self.ledger.active

    @property
    def is_backfill_active(self) -> bool:
        return self.ledger.is_active

    @property
    def current_players(self) -> int:
        return self.occupancy.current_players

    @property
    def max_players(self) -> int:
        return self.occupancy.max_players

    @property
    def available_slots(self) -> int:
        return self.occupancy.available_slots

    @property
    def time_since_start(self) -> float:
        return self.phase_controller.elapsed_since_start or 0.0

    def admission_state(self) -> AdmissionState:
        pc = self.phase_controller
        return AdmissionState(
            phase=pc.phase,
            locked=pc.locked,
            current_players=self.occupancy.current_players,
            max_players=self.occupancy.max_players,
            elapsed_since_start=pc.elapsed_since_start,
            estimated_time_remaining=pc.estimated_time_remaining,
        )

    def status(self) -> dict[str, Any]:
        """Everything an operator dashboard needs, JSON-ready."""
        active = self.ledger.active
        last = self.ledger.last_request
        return {
            "phase": self.phase.value,
            "phase_name": self.phase.display_name,
            "locked": self.is_locked,
            "is_authority": self.is_authority,
            "current_players": self.current_players,
            "max_players": self.max_players,
            "available_slots": self.available_slots,
            "team_counts": dict(self.occupancy.team_snapshot()),
            "time_since_start": self.time_since_start,
            "estimated_time_remaining": self.phase_controller.estimated_time_remaining,
            "can_join": self.can_join_in_progress().value,
            "active_backfill": active.model_dump(mode="json") if active else None,
            "last_backfill": last.model_dump(mode="json") if last else None,
            "history_size": len(self.history),
            "pending_auto_backfill": self.auto_backfill.pending is not None,
        }

    # ------------------------------------------------------------------
    # Phase and lock
    # ------------------------------------------------------------------

    def set_phase(self, phase: GamePhase) -> bool:
        if not self._require_authority("set_phase"):
            return False
        return self.phase_controller.set_phase(phase)

    def set_estimated_time_remaining(self, seconds: float | None) -> None:
        self.phase_controller.set_estimated_time_remaining(seconds)

    def lock(self) -> bool:
        if not self._require_authority("lock"):
            return False
        return self.phase_controller.lock()

    def unlock(self) -> bool:
        if not self._require_authority("unlock"):
            return False
        return self.phase_controller.unlock()

    def apply_phase_sync(self, message: PhaseSyncMessage) -> bool:
        return self.phase_controller.apply_sync(message)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def can_join_in_progress(self, candidate_id: str | None = None) -> JoinResult:
        return admission.evaluate(
            self._admission_config,
            self.admission_state(),
            candidate_id=candidate_id,
            is_banned=self._ban_check,
        )

    def process_join_in_progress(
        self,
        candidate_id: str,
        display_name: str,
        is_backfill: bool = False,
        backfill_request_id: str | None = None,
    ) -> JoinRecord | None:
        """Admit a player joining mid-match, or deny without touching state.

        On success the player is assigned a team and spawn hint, recorded in
        the history, counted, and credited to the active backfill request if
        the ids match. Returns the JoinRecord, or None when denied.
        """
        if not self._require_authority("process_join_in_progress"):
            return None

        result = self.can_join_in_progress(candidate_id)
        if not result.allowed:
            self.signals.emit(
                SignalType.JOIN_DENIED, candidate_id=candidate_id, reason=result.value
            )
            logger.debug("join_denied candidate=%s reason=%s", candidate_id, result.value)
            return None

        team = assign_team(self.occupancy.team_snapshot(), self._backfill_config.balance_teams)
        record = JoinRecord(
            candidate_id=candidate_id,
            display_name=display_name,
            assigned_team=team,
            spawn_hint=choose_spawn(self._spawn_config, self._rng),
            spawn_protection_seconds=self._spawn_config.spawn_protection_seconds,
            phase_at_join=self.phase,
            joined_at=self._clock.now(),
            is_backfill=is_backfill,
            backfill_request_id=backfill_request_id if is_backfill else None,
        )

        self.history.append(record)
        self.occupancy.add(team)
        if is_backfill:
            self.ledger.fulfill(backfill_request_id, candidate_id)

        self.signals.emit(
            SignalType.PLAYER_JOINED_IN_PROGRESS, record=record.model_dump(mode="json")
        )
        logger.info(
            "player_joined_in_progress candidate=%s team=%d phase=%s backfill=%s",
            candidate_id,
            team,
            record.phase_at_join.value,
            record.backfill_request_id,
        )
        return record

    def on_player_left(self, candidate_id: str, team: int | None = None) -> bool:
        """Record a departure. Returns True if an auto-backfill was scheduled."""
        return self.auto_backfill.on_departure(candidate_id, team)

    # ------------------------------------------------------------------
    # Backfill
    # ------------------------------------------------------------------

    def request_backfill(
        self,
        slots: int,
        preferred_team: int | None = None,
        game_mode: str | None = None,
        region: str | None = None,
        requirements: dict[str, str] | None = None,
    ) -> BackfillRequest | None:
        if not self._require_authority("request_backfill"):
            return None
        return self.ledger.request(
            slots,
            preferred_team=preferred_team,
            game_mode=game_mode,
            region=region,
            requirements=requirements,
        )

    def request_backfill_for_all_slots(self) -> BackfillRequest | None:
        """Ask for exactly as many players as there are free seats."""
        slots = self.available_slots
        if slots <= 0:
            return None
        return self.request_backfill(slots)

    def cancel_backfill(self) -> BackfillRequest | None:
        if not self._require_authority("cancel_backfill"):
            return None
        return self.ledger.cancel()

    # ------------------------------------------------------------------
    # Configuration and external corrections
    # ------------------------------------------------------------------

    def configure_admission(self, **changes: Any) -> AdmissionConfig:
        """Replace admission config fields, e.g. ``jip_timeout_seconds=120``."""
        self._admission_config = AdmissionConfig.model_validate(
            {**self._admission_config.model_dump(), **changes}
        )
        self.phase_controller.lock_after_start = self._admission_config.lock_after_start
        return self._admission_config

    def configure_backfill(self, **changes: Any) -> BackfillConfig:
        self._backfill_config = BackfillConfig.model_validate(
            {**self._backfill_config.model_dump(), **changes}
        )
        self.ledger.timeout_seconds = self._backfill_config.timeout_seconds
        return self._backfill_config

    def set_allowed_phases(self, phases: Iterable[GamePhase]) -> None:
        self.configure_admission(allowed_phases=frozenset(phases))

    def add_allowed_phase(self, phase: GamePhase) -> None:
        self.configure_admission(allowed_phases=self._admission_config.allowed_phases | {phase})

    def remove_allowed_phase(self, phase: GamePhase) -> None:
        self.configure_admission(allowed_phases=self._admission_config.allowed_phases - {phase})

    def set_spawn_points(
        self, points: Iterable[SpawnPoint], use_special: bool | None = None
    ) -> None:
        self._spawn_config = self._spawn_config.model_copy(
            update={
                "spawn_points": tuple(points),
                "use_special_spawns": (
                    self._spawn_config.use_special_spawns if use_special is None else use_special
                ),
            }
        )

    def set_ban_check(self, ban_check: BanCheck | None) -> None:
        self._ban_check = ban_check

    def set_max_players(self, max_players: int) -> None:
        self.occupancy.max_players = max(0, max_players)

    def set_current_players(self, count: int) -> None:
        self.occupancy.current_players = max(0, count)

    def set_team_counts(self, counts: Mapping[int, int]) -> None:
        self.occupancy.set_team_counts(counts)

    def set_team_count(self, team: int, count: int) -> None:
        self.occupancy.set_team_count(team, count)

    # ------------------------------------------------------------------
    # Observers and lifecycle
    # ------------------------------------------------------------------

    def subscribe(
        self, handler: Handler, signal_type: SignalType | None = None
    ) -> SignalSubscription:
        return self.signals.subscribe(handler, signal_type)

    def tick(self) -> list[Signal]:
        """Run due deferred work, sweep expiry, and deliver queued signals."""
        self.scheduler.run_due()
        self.ledger.expire()
        return self.signals.drain()

    def reset_for_new_match(self) -> None:
        """Clear phase, lock, backfill and history; keep config and observers."""
        # An overdue request still reports backfill.failed before it is dropped.
        self.ledger.expire()
        had_backfill = self.ledger.active is not None
        self.auto_backfill.cancel()
        self.scheduler.cancel_all()
        self.phase_controller.reset()
        self.ledger.reset()
        self.history.clear()
        if had_backfill:
            self.discovery.set_backfill_status(False, 0)
        logger.info("match_reset")

    def _require_authority(self, operation: str) -> bool:
        if self.is_authority:
            return True
        logger.warning("replica_rejected operation=%s", operation)
        return False
