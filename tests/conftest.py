"""Shared test fixtures."""

import random

import pytest

from matchgate.config import Settings
from matchgate.core.clock import ManualClock
from matchgate.core.discovery import InMemoryDiscoveryRecord
from matchgate.core.engine import MatchAdmissionEngine
from matchgate.models.admission import AdmissionConfig
from matchgate.models.backfill import BackfillConfig


@pytest.fixture
def settings() -> Settings:
    """Test settings with defaults."""
    return Settings(matchgate_env="development")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1000.0)


@pytest.fixture
def record() -> InMemoryDiscoveryRecord:
    return InMemoryDiscoveryRecord()


@pytest.fixture
def banned() -> set[str]:
    return set()


@pytest.fixture
def engine(clock, record, banned) -> MatchAdmissionEngine:
    """Authority engine on virtual time: 8 seats, 3 filled, auto-backfill on."""
    eng = MatchAdmissionEngine(
        admission_config=AdmissionConfig(),
        backfill_config=BackfillConfig(auto_backfill=True, delay_seconds=5.0, min_players=2),
        max_players=8,
        clock=clock,
        discovery_record=record,
        ban_check=banned.__contains__,
        rng=random.Random(7),
    )
    eng.set_current_players(3)
    return eng


class Recorder:
    """Collects delivered signals by type."""

    def __init__(self) -> None:
        self.signals = []

    def __call__(self, signal) -> None:
        self.signals.append(signal)

    def of(self, signal_type) -> list:
        return [s for s in self.signals if s.type == signal_type]


@pytest.fixture
def recorder(engine) -> Recorder:
    rec = Recorder()
    engine.subscribe(rec)
    return rec
