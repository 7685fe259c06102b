"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from matchgate.models.admission import DEFAULT_ALLOWED_PHASES, AdmissionConfig
from matchgate.models.backfill import BackfillConfig
from matchgate.models.join import SpawnConfig, SpawnPoint
from matchgate.models.match import GamePhase


class Settings(BaseSettings):
    """Matchgate configuration.

    All values can be overridden via environment variables or .env file.
    Collection values (allowed phases, spawn points) are read as JSON.
    """

    # Environment
    matchgate_env: str = "development"
    matchgate_is_authority: bool = True

    # Join-in-progress
    matchgate_allow_join_in_progress: bool = True
    matchgate_jip_timeout_seconds: float = Field(default=300.0, ge=0.0)
    matchgate_jip_min_time_remaining: float = Field(default=60.0, ge=0.0)
    matchgate_lock_after_start: bool = False
    matchgate_allowed_phases: list[GamePhase] = Field(
        default_factory=lambda: sorted(DEFAULT_ALLOWED_PHASES, key=list(GamePhase).index)
    )

    # Backfill
    matchgate_auto_backfill: bool = False
    matchgate_backfill_delay_seconds: float = Field(default=5.0, ge=0.0)
    matchgate_backfill_timeout_seconds: float = Field(default=60.0, ge=0.0)
    matchgate_min_players_for_backfill: int = Field(default=2, ge=0)
    matchgate_balance_teams: bool = True

    # Spawning
    matchgate_use_special_spawns: bool = False
    matchgate_spawn_points: list[tuple[float, float, float]] = Field(default_factory=list)
    matchgate_spawn_protection_seconds: float = Field(default=3.0, ge=0.0)

    # Capacity and bookkeeping
    matchgate_max_players: int = 8
    matchgate_history_limit: int = Field(default=1000, ge=1)
    matchgate_tick_interval_seconds: float = Field(default=1.0, gt=0.0)

    # Logging
    matchgate_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_capacity(self) -> Settings:
        """A match with no seats can never admit anyone."""
        if self.matchgate_max_players <= 0:
            msg = "MATCHGATE_MAX_PLAYERS must be positive"
            raise ValueError(msg)
        return self

    def admission_config(self) -> AdmissionConfig:
        return AdmissionConfig(
            allow_join_in_progress=self.matchgate_allow_join_in_progress,
            jip_timeout_seconds=self.matchgate_jip_timeout_seconds,
            min_time_remaining_seconds=self.matchgate_jip_min_time_remaining,
            allowed_phases=frozenset(self.matchgate_allowed_phases),
            lock_after_start=self.matchgate_lock_after_start,
        )

    def backfill_config(self) -> BackfillConfig:
        return BackfillConfig(
            auto_backfill=self.matchgate_auto_backfill,
            delay_seconds=self.matchgate_backfill_delay_seconds,
            timeout_seconds=self.matchgate_backfill_timeout_seconds,
            min_players=self.matchgate_min_players_for_backfill,
            balance_teams=self.matchgate_balance_teams,
        )

    def spawn_config(self) -> SpawnConfig:
        return SpawnConfig(
            use_special_spawns=self.matchgate_use_special_spawns,
            spawn_points=tuple(
                SpawnPoint(x=x, y=y, z=z) for x, y, z in self.matchgate_spawn_points
            ),
            spawn_protection_seconds=self.matchgate_spawn_protection_seconds,
        )
