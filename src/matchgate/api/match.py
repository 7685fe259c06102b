"""Authority admin API for inspecting and steering the admission engine.

Joins and departures are not exposed here; they arrive through the game's
own transport and call the engine directly.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from matchgate.core.engine import MatchAdmissionEngine
from matchgate.models.backfill import BackfillRequest
from matchgate.models.join import JoinRecord
from matchgate.models.match import GamePhase

router = APIRouter(prefix="/api/match", tags=["match"])


class PhaseRequest(BaseModel):
    phase: GamePhase


class LockResponse(BaseModel):
    locked: bool
    changed: bool


class BackfillBody(BaseModel):
    """Request model for opening a backfill request."""

    slots: int = Field(ge=1)
    preferred_team: int | None = None
    game_mode: str | None = None
    region: str | None = None
    requirements: dict[str, str] = Field(default_factory=dict)


class AdmissionResponse(BaseModel):
    candidate_id: str | None
    result: str
    allowed: bool
    message: str


class HistoryResponse(BaseModel):
    records: list[JoinRecord]
    limit: int
    dropped: int


def _get_engine(request: Request) -> MatchAdmissionEngine:
    return request.app.state.engine


def _require_authority(engine: MatchAdmissionEngine) -> None:
    if not engine.is_authority:
        raise HTTPException(status_code=409, detail="This instance is a replica")


@router.get("")
async def get_status(request: Request) -> dict:
    """Current phase, lock, occupancy and backfill state."""
    return _get_engine(request).status()


@router.get("/history", response_model=HistoryResponse)
async def get_history(request: Request) -> HistoryResponse:
    history = _get_engine(request).history
    return HistoryResponse(
        records=list(history.records()), limit=history.limit, dropped=history.dropped
    )


@router.get("/admission", response_model=AdmissionResponse)
async def check_admission(request: Request, candidate_id: str | None = None) -> AdmissionResponse:
    """Evaluate the admission policy without admitting anyone."""
    result = _get_engine(request).can_join_in_progress(candidate_id)
    return AdmissionResponse(
        candidate_id=candidate_id,
        result=result.value,
        allowed=result.allowed,
        message=result.message,
    )


@router.post("/phase")
async def set_phase(body: PhaseRequest, request: Request) -> dict:
    engine = _get_engine(request)
    _require_authority(engine)
    changed = engine.set_phase(body.phase)
    return {"phase": engine.phase.value, "changed": changed}


@router.post("/lock", response_model=LockResponse)
async def lock(request: Request) -> LockResponse:
    engine = _get_engine(request)
    _require_authority(engine)
    changed = engine.lock()
    return LockResponse(locked=engine.is_locked, changed=changed)


@router.post("/unlock", response_model=LockResponse)
async def unlock(request: Request) -> LockResponse:
    engine = _get_engine(request)
    _require_authority(engine)
    changed = engine.unlock()
    return LockResponse(locked=engine.is_locked, changed=changed)


@router.post("/backfill", response_model=BackfillRequest)
async def request_backfill(body: BackfillBody, request: Request) -> BackfillRequest:
    """Open a backfill request, or return the one already open.

    Errors:
        409: admission policy refuses new players right now
    """
    engine = _get_engine(request)
    _require_authority(engine)
    backfill = engine.request_backfill(
        body.slots,
        preferred_team=body.preferred_team,
        game_mode=body.game_mode,
        region=body.region,
        requirements=body.requirements,
    )
    if backfill is None:
        result = engine.can_join_in_progress()
        raise HTTPException(status_code=409, detail=f"Backfill refused: {result.message}")
    return backfill


@router.post("/backfill/all", response_model=BackfillRequest)
async def request_backfill_for_all_slots(request: Request) -> BackfillRequest:
    engine = _get_engine(request)
    _require_authority(engine)
    backfill = engine.request_backfill_for_all_slots()
    if backfill is None:
        raise HTTPException(
            status_code=409, detail="Backfill refused: no free slots or joins closed"
        )
    return backfill


@router.delete("/backfill", response_model=BackfillRequest)
async def cancel_backfill(request: Request) -> BackfillRequest:
    engine = _get_engine(request)
    _require_authority(engine)
    cancelled = engine.cancel_backfill()
    if cancelled is None:
        raise HTTPException(status_code=404, detail="No active backfill request")
    return cancelled
