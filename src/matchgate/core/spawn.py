"""Spawn hints for join-in-progress players."""

from __future__ import annotations

import random

from matchgate.models.join import ORIGIN, SpawnConfig, SpawnPoint


def choose_spawn(config: SpawnConfig, rng: random.Random) -> SpawnPoint:
    """Return where a late joiner should appear.

    With special JIP spawns enabled and configured, one point is chosen
    uniformly at random. Otherwise the origin.
    """
    if config.use_special_spawns and config.spawn_points:
        return rng.choice(config.spawn_points)
    return ORIGIN
