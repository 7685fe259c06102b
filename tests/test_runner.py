"""Tests for the periodic tick runner."""

from matchgate.core.event_bus import EventBus
from matchgate.core.runner import tick_match


class TestTickMatch:
    async def test_forwards_drained_signals(self, engine, clock):
        bus = EventBus()
        async with bus.subscribe(None) as sub:
            engine.lock()
            forwarded = await tick_match(engine, bus)
            events = [await sub.get(timeout=1.0) for _ in range(forwarded)]

        types = [e["type"] for e in events]
        assert "game.locked" in types
        assert "phase.sync" in types

    async def test_fires_due_auto_backfill(self, engine, clock):
        bus = EventBus()
        engine.on_player_left("p-1", team=0)
        clock.advance(5.0)
        async with bus.subscribe("backfill.started") as sub:
            await tick_match(engine, bus)
            event = await sub.get(timeout=1.0)
        assert event["data"]["request"]["slots_needed"] == 1

    async def test_quiet_tick(self, engine):
        assert await tick_match(engine, EventBus()) == 0

    async def test_engine_error_is_contained(self, engine, monkeypatch, caplog):
        def boom():
            raise RuntimeError("tick exploded")

        monkeypatch.setattr(engine, "tick", boom)
        assert await tick_match(engine, EventBus()) == 0
        assert "tick_match_failed" in caplog.text
