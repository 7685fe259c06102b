"""Player and team counters.

The engine keeps these itself as joins and departures flow through it, and
accepts corrections from the owner of the real roster for anything that
happens out of band (disconnects the engine never saw, a host resizing the
match).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass
class Occupancy:
    max_players: int = 8
    current_players: int = 0
    team_counts: dict[int, int] = field(default_factory=dict)

    @property
    def available_slots(self) -> int:
        return max(0, self.max_players - self.current_players)

    def team_snapshot(self) -> Mapping[int, int]:
        """Read-only copy of team counts for a single decision."""
        return MappingProxyType(dict(self.team_counts))

    def add(self, team: int) -> None:
        self.current_players += 1
        self.team_counts[team] = self.team_counts.get(team, 0) + 1

    def remove(self, team: int | None = None) -> None:
        """Record a departure. Counters never go below zero."""
        self.current_players = max(0, self.current_players - 1)
        if team is not None and team >= 0 and team in self.team_counts:
            self.team_counts[team] = max(0, self.team_counts[team] - 1)

    def set_team_counts(self, counts: Mapping[int, int]) -> None:
        self.team_counts = {int(team): max(0, int(count)) for team, count in counts.items()}

    def set_team_count(self, team: int, count: int) -> None:
        self.team_counts[team] = max(0, count)
