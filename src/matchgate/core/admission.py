"""Join-in-progress admission policy.

``evaluate`` is a pure function of its inputs: the same config, state,
candidate and ban check always give the same JoinResult. Nothing is cached,
so a join attempt racing a lock command is decided on whatever state the
engine holds at the moment of the call.

Checks run in a fixed order, cheapest and most stable first, and the first
failure wins:

1. allow-join flag            -> DENIED_LOCKED
2. lock flag                  -> DENIED_LOCKED
3. phase in allowed phases    -> DENIED_PHASE
4. occupancy below capacity   -> DENIED_FULL
5. elapsed since start        -> DENIED_TIMEOUT (only once started)
6. estimated time remaining   -> DENIED_TIMEOUT (only if reported and positive)
7. ban list                   -> DENIED_BANNED (only with a candidate id)
"""

from __future__ import annotations

from collections.abc import Callable

from matchgate.models.admission import AdmissionConfig, AdmissionState
from matchgate.models.match import JoinResult

BanCheck = Callable[[str], bool]


def evaluate(
    config: AdmissionConfig,
    state: AdmissionState,
    candidate_id: str | None = None,
    is_banned: BanCheck | None = None,
) -> JoinResult:
    """Decide whether a candidate may join right now.

    Args:
        config: Policy knobs.
        state: Snapshot of phase, lock and occupancy.
        candidate_id: Joining player. None evaluates the match itself
            (used before opening a backfill request).
        is_banned: External ban-list lookup by candidate id.

    Returns:
        JoinResult.ALLOWED or the reason for the first failed check.
    """
    if not config.allow_join_in_progress:
        return JoinResult.DENIED_LOCKED

    if state.locked:
        return JoinResult.DENIED_LOCKED

    if state.phase not in config.allowed_phases:
        return JoinResult.DENIED_PHASE

    if state.current_players >= state.max_players:
        return JoinResult.DENIED_FULL

    elapsed = state.elapsed_since_start
    if elapsed is not None and elapsed > config.jip_timeout_seconds:
        return JoinResult.DENIED_TIMEOUT

    remaining = state.estimated_time_remaining
    if remaining is not None and 0 < remaining < config.min_time_remaining_seconds:
        return JoinResult.DENIED_TIMEOUT

    if candidate_id and is_banned is not None and is_banned(candidate_id):
        return JoinResult.DENIED_BANNED

    return JoinResult.ALLOWED
