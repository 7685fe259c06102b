"""Backfill request models."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field


class BackfillStatus(str, Enum):
    """Lifecycle of a backfill request.

    "Filling" is not a status: a request with slots_filled > 0 is still
    REQUESTING until every slot is taken.
    """

    NONE = "none"
    REQUESTING = "requesting"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (BackfillStatus.COMPLETE, BackfillStatus.CANCELLED, BackfillStatus.FAILED)


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


class BackfillRequest(BaseModel):
    """An open call for players to fill empty slots."""

    id: str = Field(default_factory=_short_id)
    slots_needed: int = Field(ge=1)
    slots_filled: int = Field(default=0, ge=0)
    created_at: float
    timeout_seconds: float = Field(default=60.0, ge=0.0)
    preferred_team: int | None = None
    game_mode: str | None = None
    region: str | None = None
    requirements: dict[str, str] = Field(default_factory=dict)
    status: BackfillStatus = BackfillStatus.NONE

    @property
    def is_filled(self) -> bool:
        return self.slots_filled >= self.slots_needed

    @property
    def slots_remaining(self) -> int:
        return max(0, self.slots_needed - self.slots_filled)

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.timeout_seconds

    def time_remaining(self, now: float) -> float:
        return max(0.0, self.timeout_seconds - (now - self.created_at))


class BackfillConfig(BaseModel):
    """Backfill and auto-backfill tuning."""

    model_config = {"frozen": True}

    auto_backfill: bool = False
    delay_seconds: float = Field(default=5.0, ge=0.0)
    timeout_seconds: float = Field(default=60.0, ge=0.0)
    min_players: int = Field(default=2, ge=0)
    balance_teams: bool = True
