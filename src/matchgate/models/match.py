"""Match phase, join outcome and phase-sync types."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class GamePhase(str, Enum):
    """Phase of the match. Any phase may follow any other."""

    LOBBY = "lobby"
    LOADING = "loading"
    WARMUP = "warmup"
    IN_PROGRESS = "in_progress"
    OVERTIME = "overtime"
    POST_GAME = "post_game"
    CUSTOM = "custom"

    @property
    def display_name(self) -> str:
        return _PHASE_NAMES[self]


_PHASE_NAMES: dict[GamePhase, str] = {
    GamePhase.LOBBY: "Lobby",
    GamePhase.LOADING: "Loading",
    GamePhase.WARMUP: "Warmup",
    GamePhase.IN_PROGRESS: "In Progress",
    GamePhase.OVERTIME: "Overtime",
    GamePhase.POST_GAME: "Post Game",
    GamePhase.CUSTOM: "Custom",
}


class JoinResult(str, Enum):
    """Outcome of an admission evaluation."""

    ALLOWED = "allowed"
    DENIED_PHASE = "denied_phase"
    DENIED_FULL = "denied_full"
    DENIED_TIMEOUT = "denied_timeout"
    DENIED_LOCKED = "denied_locked"
    DENIED_BANNED = "denied_banned"
    DENIED_OTHER = "denied_other"

    @property
    def allowed(self) -> bool:
        return self is JoinResult.ALLOWED

    @property
    def message(self) -> str:
        """Player-facing explanation of the outcome."""
        return _RESULT_MESSAGES[self]


_RESULT_MESSAGES: dict[JoinResult, str] = {
    JoinResult.ALLOWED: "Join allowed",
    JoinResult.DENIED_PHASE: "Game phase does not allow joining",
    JoinResult.DENIED_FULL: "Game is full",
    JoinResult.DENIED_TIMEOUT: "Too late to join",
    JoinResult.DENIED_LOCKED: "Game is locked",
    JoinResult.DENIED_BANNED: "You are banned",
    JoinResult.DENIED_OTHER: "Cannot join",
}


class PhaseSyncMessage(BaseModel):
    """Authority-to-replica mirror of the phase controller.

    ``sequence`` increases with every broadcast so replicas can drop
    messages that arrive out of order.
    """

    model_config = {"frozen": True}

    phase: GamePhase
    locked: bool = False
    sequence: int = Field(default=0, ge=0)
