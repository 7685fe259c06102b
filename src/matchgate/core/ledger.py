"""Backfill request ledger. Owns the single active backfill request.

State machine::

    NONE -> REQUESTING -> COMPLETE | CANCELLED | FAILED

At most one request is REQUESTING at any time. A terminal transition
clears the active slot; the request object is kept as ``last_request`` and
its id lives on in the JoinRecords of players who filled it.

Expiry is evaluated lazily on every access (``active``, ``is_active``,
``request``, ``fulfill``) and by ``expire()`` from the periodic tick, so an
expired request is never handed out or fulfilled.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from matchgate.core.clock import Clock
from matchgate.core.discovery import DiscoveryPublisher
from matchgate.core.signals import SignalBus, SignalType
from matchgate.models.backfill import BackfillRequest, BackfillStatus
from matchgate.models.match import JoinResult

logger = logging.getLogger(__name__)

AdmissionGate = Callable[[], JoinResult]


class BackfillLedger:
    def __init__(
        self,
        clock: Clock,
        signals: SignalBus,
        discovery: DiscoveryPublisher,
        gate: AdmissionGate,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._clock = clock
        self._signals = signals
        self._discovery = discovery
        self._gate = gate
        self.timeout_seconds = timeout_seconds
        self._active: BackfillRequest | None = None
        self._last: BackfillRequest | None = None

    @property
    def active(self) -> BackfillRequest | None:
        """The REQUESTING request, if any (after applying expiry)."""
        self.expire()
        return self._active

    @property
    def is_active(self) -> bool:
        return self.active is not None

    @property
    def last_request(self) -> BackfillRequest | None:
        """Most recent request to reach a terminal status."""
        return self._last

    def request(
        self,
        slots: int,
        preferred_team: int | None = None,
        game_mode: str | None = None,
        region: str | None = None,
        requirements: dict[str, str] | None = None,
    ) -> BackfillRequest | None:
        """Open a backfill request.

        Returns the existing request unchanged if one is already open, None
        if ``slots`` is not positive or the match is not accepting players.
        """
        existing = self.active
        if existing is not None:
            return existing

        if slots <= 0:
            logger.debug("backfill_rejected slots=%d", slots)
            return None

        result = self._gate()
        if not result.allowed:
            logger.debug("backfill_rejected reason=%s", result.value)
            return None

        request = BackfillRequest(
            slots_needed=slots,
            created_at=self._clock.now(),
            timeout_seconds=self.timeout_seconds,
            preferred_team=preferred_team,
            game_mode=game_mode,
            region=region,
            requirements=dict(requirements or {}),
            status=BackfillStatus.REQUESTING,
        )
        self._active = request
        self._discovery.set_backfill_status(True, slots)
        self._signals.emit(SignalType.BACKFILL_STARTED, request=request.model_dump(mode="json"))
        logger.info(
            "backfill_started id=%s slots=%d team=%s mode=%s region=%s",
            request.id,
            slots,
            preferred_team,
            game_mode,
            region,
        )
        return request

    def fulfill(self, request_id: str | None, candidate_id: str) -> bool:
        """Count one joined player against the active request.

        Returns False (and changes nothing) when no request is open or the
        id does not match it.
        """
        request = self.active
        if request is None or not request_id or request.id != request_id:
            logger.debug("backfill_fulfill_ignored id=%s candidate=%s", request_id, candidate_id)
            return False

        request.slots_filled += 1
        self._signals.emit(
            SignalType.BACKFILL_PLAYER_JOINED,
            request=request.model_dump(mode="json"),
            candidate_id=candidate_id,
        )
        logger.info(
            "backfill_player_joined id=%s candidate=%s filled=%d/%d",
            request.id,
            candidate_id,
            request.slots_filled,
            request.slots_needed,
        )

        if request.is_filled:
            self._finish(request, BackfillStatus.COMPLETE, SignalType.BACKFILL_COMPLETED)
        else:
            self._discovery.set_backfill_status(True, request.slots_remaining)
        return True

    def cancel(self) -> BackfillRequest | None:
        """Cancel the open request. Returns it, or None if nothing was open.

        A request already past its timeout fails instead of being cancelled.
        """
        request = self.active
        if request is None:
            return None
        self._finish(request, BackfillStatus.CANCELLED, SignalType.BACKFILL_CANCELLED)
        return request

    def expire(self) -> BackfillRequest | None:
        """Fail the open request if it outlived its timeout. Returns it if so."""
        request = self._active
        if request is None or not request.is_expired(self._clock.now()):
            return None
        self._finish(request, BackfillStatus.FAILED, SignalType.BACKFILL_FAILED)
        return request

    def reset(self) -> None:
        """Drop all ledger state without emitting signals."""
        self._active = None
        self._last = None

    def _finish(self, request: BackfillRequest, status: BackfillStatus, signal: SignalType) -> None:
        request.status = status
        self._active = None
        self._last = request
        self._discovery.set_backfill_status(False, 0)
        self._signals.emit(signal, request=request.model_dump(mode="json"))
        logger.info(
            "backfill_%s id=%s filled=%d/%d",
            status.value,
            request.id,
            request.slots_filled,
            request.slots_needed,
        )
