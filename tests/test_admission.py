"""Tests for the join-in-progress admission policy."""

import pytest

from matchgate.core.admission import evaluate
from matchgate.models.admission import AdmissionConfig, AdmissionState
from matchgate.models.match import GamePhase, JoinResult


def _state(**overrides) -> AdmissionState:
    base = {"phase": GamePhase.LOBBY, "current_players": 3, "max_players": 8}
    base.update(overrides)
    return AdmissionState(**base)


class TestAllowed:
    def test_lobby_with_free_seats_is_allowed(self):
        """Lobby, unlocked, 3/8 seats, unbanned candidate."""
        assert evaluate(AdmissionConfig(), _state(), "p-1", lambda _: False) == JoinResult.ALLOWED

    def test_no_candidate_skips_ban_check(self):
        def explode(_):
            raise AssertionError("ban check should not run")

        assert evaluate(AdmissionConfig(), _state(), None, explode) == JoinResult.ALLOWED

    def test_within_timeout_is_allowed(self):
        state = _state(phase=GamePhase.IN_PROGRESS, elapsed_since_start=300.0)
        assert evaluate(AdmissionConfig(jip_timeout_seconds=300), state) == JoinResult.ALLOWED

    def test_unknown_time_remaining_is_ignored(self):
        for remaining in (None, 0.0, -1.0):
            state = _state(estimated_time_remaining=remaining)
            assert evaluate(AdmissionConfig(), state) == JoinResult.ALLOWED


class TestDenials:
    def test_join_disabled_reports_locked(self):
        config = AdmissionConfig(allow_join_in_progress=False)
        assert evaluate(config, _state()) == JoinResult.DENIED_LOCKED

    def test_locked(self):
        assert evaluate(AdmissionConfig(), _state(locked=True)) == JoinResult.DENIED_LOCKED

    def test_phase_not_allowed(self):
        state = _state(phase=GamePhase.POST_GAME)
        assert evaluate(AdmissionConfig(), state) == JoinResult.DENIED_PHASE

    def test_full(self):
        state = _state(current_players=8)
        assert evaluate(AdmissionConfig(), state) == JoinResult.DENIED_FULL

    def test_timeout_since_start(self):
        """Match started at t0, timeout 300s, now t0+301s."""
        state = _state(phase=GamePhase.IN_PROGRESS, elapsed_since_start=301.0)
        config = AdmissionConfig(jip_timeout_seconds=300)
        assert evaluate(config, state) == JoinResult.DENIED_TIMEOUT

    def test_too_little_time_remaining(self):
        state = _state(estimated_time_remaining=30.0)
        config = AdmissionConfig(min_time_remaining_seconds=60)
        assert evaluate(config, state) == JoinResult.DENIED_TIMEOUT

    def test_banned(self):
        assert evaluate(AdmissionConfig(), _state(), "bad", {"bad"}.__contains__) == (
            JoinResult.DENIED_BANNED
        )


class TestCheckOrder:
    def test_locked_beats_phase_and_full(self):
        state = _state(locked=True, phase=GamePhase.POST_GAME, current_players=8)
        assert evaluate(AdmissionConfig(), state) == JoinResult.DENIED_LOCKED

    def test_phase_beats_full(self):
        state = _state(phase=GamePhase.LOADING, current_players=8)
        assert evaluate(AdmissionConfig(), state) == JoinResult.DENIED_PHASE

    def test_full_beats_timeout(self):
        state = _state(phase=GamePhase.IN_PROGRESS, current_players=8, elapsed_since_start=999.0)
        assert evaluate(AdmissionConfig(), state) == JoinResult.DENIED_FULL

    def test_timeout_beats_ban(self):
        state = _state(phase=GamePhase.IN_PROGRESS, elapsed_since_start=999.0)
        result = evaluate(AdmissionConfig(), state, "bad", {"bad"}.__contains__)
        assert result == JoinResult.DENIED_TIMEOUT


class TestBannedAlwaysDenied:
    @pytest.mark.parametrize("phase", [GamePhase.LOBBY, GamePhase.WARMUP, GamePhase.IN_PROGRESS])
    @pytest.mark.parametrize("players", [0, 3, 7])
    def test_banned_denied_whenever_other_checks_pass(self, phase, players):
        state = _state(phase=phase, current_players=players)
        result = evaluate(AdmissionConfig(), state, "bad", {"bad"}.__contains__)
        assert result == JoinResult.DENIED_BANNED


class TestPurity:
    def test_repeated_calls_agree(self):
        config = AdmissionConfig(jip_timeout_seconds=120)
        state = _state(phase=GamePhase.IN_PROGRESS, elapsed_since_start=60.0, current_players=5)
        results = {evaluate(config, state, "p-1", lambda _: False) for _ in range(20)}
        assert results == {JoinResult.ALLOWED}

    def test_inputs_are_not_mutated(self):
        config = AdmissionConfig()
        state = _state()
        before = (config.model_dump(), state.model_dump())
        evaluate(config, state, "p-1", lambda _: False)
        assert (config.model_dump(), state.model_dump()) == before


class TestResultMessages:
    def test_every_result_has_a_message(self):
        for result in JoinResult:
            assert result.message

    def test_allowed_flag(self):
        assert JoinResult.ALLOWED.allowed is True
        assert all(not r.allowed for r in JoinResult if r is not JoinResult.ALLOWED)

    def test_known_messages(self):
        assert JoinResult.DENIED_FULL.message == "Game is full"
        assert JoinResult.DENIED_TIMEOUT.message == "Too late to join"
