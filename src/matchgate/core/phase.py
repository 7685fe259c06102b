"""Match phase and lock state.

Phases are unordered: any phase may follow any other, and setting the
current phase again is a no-op. The first entry into IN_PROGRESS stamps the
match start time (used by the JIP timeout) and, with lock-after-start, locks
the match.

The lock is a real two-state machine. ``lock()`` and ``unlock()`` are
idempotent: repeating one emits nothing. Locking cancels any open backfill
request and runs the ``on_lock`` hook before advertising the match as not
joinable. Resetting to the lobby is reported like any other change.

On the authority every phase or lock change is broadcast as a
PhaseSyncMessage. Replicas apply those messages with ``apply_sync`` and
never make admission decisions themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from matchgate.core.clock import Clock
from matchgate.core.discovery import DiscoveryPublisher
from matchgate.core.ledger import BackfillLedger
from matchgate.core.signals import SignalBus, SignalType
from matchgate.models.match import GamePhase, PhaseSyncMessage

logger = logging.getLogger(__name__)

PhaseSyncSink = Callable[[PhaseSyncMessage], None]


class PhaseController:
    def __init__(
        self,
        clock: Clock,
        signals: SignalBus,
        discovery: DiscoveryPublisher,
        ledger: BackfillLedger,
        lock_after_start: bool = False,
        is_authority: bool = True,
        sync_sink: PhaseSyncSink | None = None,
        on_lock: Callable[[], object] | None = None,
    ) -> None:
        self._clock = clock
        self._signals = signals
        self._discovery = discovery
        self._ledger = ledger
        self.lock_after_start = lock_after_start
        self.is_authority = is_authority
        self._sync_sink = sync_sink
        self._on_lock = on_lock

        self._phase = GamePhase.LOBBY
        self._locked = False
        self._started_at: float | None = None
        self._estimated_time_remaining: float | None = None
        self._sync_sequence = 0

    @property
    def phase(self) -> GamePhase:
        return self._phase

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def started_at(self) -> float | None:
        return self._started_at

    @property
    def elapsed_since_start(self) -> float | None:
        if self._started_at is None:
            return None
        return self._clock.now() - self._started_at

    @property
    def estimated_time_remaining(self) -> float | None:
        return self._estimated_time_remaining

    @property
    def sync_sequence(self) -> int:
        return self._sync_sequence

    def set_estimated_time_remaining(self, seconds: float | None) -> None:
        """Game-reported time left. None or a non-positive value means unknown."""
        self._estimated_time_remaining = seconds

    def set_phase(self, phase: GamePhase) -> bool:
        """Move to ``phase``. Returns False if it was already current."""
        if phase == self._phase:
            return False

        old = self._phase
        self._phase = phase

        if phase == GamePhase.IN_PROGRESS and self._started_at is None:
            self._started_at = self._clock.now()
            logger.info("match_started at=%.3f", self._started_at)
            if self.lock_after_start:
                self.lock()

        self._signals.emit(SignalType.PHASE_CHANGED, old=old.value, new=phase.value)
        logger.info("phase_changed old=%s new=%s", old.value, phase.value)
        self._broadcast()
        return True

    def lock(self) -> bool:
        """Stop accepting joins. Returns False if already locked."""
        if self._locked:
            return False
        self._locked = True
        self._signals.emit(SignalType.GAME_LOCKED)
        logger.info("game_locked phase=%s", self._phase.value)
        self._ledger.cancel()
        if self._on_lock is not None:
            self._on_lock()
        self._discovery.set_joinable(False)
        self._broadcast()
        return True

    def unlock(self) -> bool:
        """Accept joins again. Returns False if already unlocked."""
        if not self._locked:
            return False
        self._locked = False
        self._signals.emit(SignalType.GAME_UNLOCKED)
        logger.info("game_unlocked phase=%s", self._phase.value)
        self._discovery.set_joinable(True)
        self._broadcast()
        return True

    def apply_sync(self, message: PhaseSyncMessage) -> bool:
        """Mirror authority state on a replica.

        Ignored on the authority and for messages older than the last one
        applied. Returns True if anything changed.
        """
        if self.is_authority:
            return False
        if message.sequence <= self._sync_sequence:
            logger.debug(
                "phase_sync_stale seq=%d last=%d", message.sequence, self._sync_sequence
            )
            return False
        self._sync_sequence = message.sequence

        changed = False
        if message.phase != self._phase:
            old = self._phase
            self._phase = message.phase
            self._signals.emit(SignalType.PHASE_CHANGED, old=old.value, new=message.phase.value)
            changed = True
        if message.locked != self._locked:
            self._locked = message.locked
            lock_signal = SignalType.GAME_LOCKED if message.locked else SignalType.GAME_UNLOCKED
            self._signals.emit(lock_signal)
            changed = True
        return changed

    def reset(self) -> None:
        """Return to an unlocked lobby with no start stamp.

        Observers and replicas see the phase and lock changes like any other.
        """
        old, was_locked = self._phase, self._locked
        self._phase = GamePhase.LOBBY
        self._locked = False
        self._started_at = None
        self._estimated_time_remaining = None

        if old != GamePhase.LOBBY:
            self._signals.emit(SignalType.PHASE_CHANGED, old=old.value, new=GamePhase.LOBBY.value)
        if was_locked:
            self._signals.emit(SignalType.GAME_UNLOCKED)
            if self.is_authority:
                self._discovery.set_joinable(True)
        if old != GamePhase.LOBBY or was_locked:
            logger.info("phase_reset old=%s was_locked=%s", old.value, was_locked)
            self._broadcast()

    def _broadcast(self) -> None:
        if not self.is_authority:
            return
        self._sync_sequence += 1
        message = PhaseSyncMessage(
            phase=self._phase, locked=self._locked, sequence=self._sync_sequence
        )
        self._signals.emit(SignalType.PHASE_SYNC, **message.model_dump(mode="json"))
        if self._sync_sink is not None:
            try:
                self._sync_sink(message)
            except Exception:  # Broadcast is fire-and-forget, replicas resync on the next change
                logger.warning(
                    "phase_sync_broadcast_failed seq=%d", message.sequence, exc_info=True
                )
