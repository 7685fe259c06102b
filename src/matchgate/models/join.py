"""Join records and spawn hints produced by an admitted join."""

from __future__ import annotations

from pydantic import BaseModel, Field

from matchgate.models.match import GamePhase


class SpawnPoint(BaseModel):
    """A position in world space. The origin is the default hint."""

    model_config = {"frozen": True}

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


ORIGIN = SpawnPoint()


class SpawnConfig(BaseModel):
    model_config = {"frozen": True}

    use_special_spawns: bool = False
    spawn_points: tuple[SpawnPoint, ...] = ()
    spawn_protection_seconds: float = Field(default=3.0, ge=0.0)


class JoinRecord(BaseModel):
    """Immutable record of an admitted join-in-progress."""

    model_config = {"frozen": True}

    candidate_id: str
    display_name: str
    assigned_team: int
    spawn_hint: SpawnPoint = ORIGIN
    spawn_protection_seconds: float = 0.0
    phase_at_join: GamePhase
    joined_at: float
    is_backfill: bool = False
    backfill_request_id: str | None = None
