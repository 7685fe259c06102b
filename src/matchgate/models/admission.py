"""Admission policy inputs.

AdmissionConfig is the tunable policy; AdmissionState is the point-in-time
view of the match that the policy is evaluated against. Both are frozen so
a single evaluation can never observe a torn update.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from matchgate.models.match import GamePhase

DEFAULT_ALLOWED_PHASES: frozenset[GamePhase] = frozenset(
    {GamePhase.LOBBY, GamePhase.WARMUP, GamePhase.IN_PROGRESS}
)


class AdmissionConfig(BaseModel):
    """Join-in-progress policy knobs."""

    model_config = {"frozen": True}

    allow_join_in_progress: bool = True
    jip_timeout_seconds: float = Field(default=300.0, ge=0.0)
    min_time_remaining_seconds: float = Field(default=60.0, ge=0.0)
    allowed_phases: frozenset[GamePhase] = DEFAULT_ALLOWED_PHASES
    lock_after_start: bool = False


class AdmissionState(BaseModel):
    """Snapshot of everything the policy reads besides the ban list.

    ``elapsed_since_start`` is None until the match first enters
    IN_PROGRESS. ``estimated_time_remaining`` is None (or non-positive)
    when the game does not report one.
    """

    model_config = {"frozen": True}

    phase: GamePhase = GamePhase.LOBBY
    locked: bool = False
    current_players: int = Field(default=0, ge=0)
    max_players: int = Field(default=8, ge=0)
    elapsed_since_start: float | None = None
    estimated_time_remaining: float | None = None
