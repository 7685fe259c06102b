"""Team assignment for players joining mid-match."""

from __future__ import annotations

from collections.abc import Mapping


def assign_team(team_counts: Mapping[int, int] | None, balancing_enabled: bool = True) -> int:
    """Pick the team for a new member.

    Returns team 0 when balancing is off or no counts are known. Otherwise
    the least-populated team wins; ties go to the lowest team id so the
    answer never depends on mapping order.
    """
    if not balancing_enabled or not team_counts:
        return 0
    return min(team_counts.items(), key=lambda item: (item[1], item[0]))[0]
