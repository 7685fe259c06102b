"""Tests for the synchronous SignalBus."""

from matchgate.core.signals import Signal, SignalBus, SignalType


class TestEmitAndDrain:
    def test_nothing_delivered_before_drain(self):
        bus = SignalBus()
        seen = []
        bus.subscribe(seen.append)
        bus.emit(SignalType.GAME_LOCKED)
        assert seen == []
        assert len(bus.pending) == 1

    def test_drain_delivers_in_emission_order(self):
        bus = SignalBus()
        seen = []
        bus.subscribe(seen.append)
        bus.emit(SignalType.GAME_LOCKED)
        bus.emit(SignalType.GAME_UNLOCKED)
        delivered = bus.drain()
        assert [s.type for s in seen] == [SignalType.GAME_LOCKED, SignalType.GAME_UNLOCKED]
        assert delivered == seen
        assert bus.pending == []

    def test_typed_handler_filters(self):
        bus = SignalBus()
        seen = []
        bus.subscribe(seen.append, SignalType.BACKFILL_STARTED)
        bus.emit(SignalType.GAME_LOCKED)
        bus.emit(SignalType.BACKFILL_STARTED, slots=2)
        bus.drain()
        assert seen == [Signal(SignalType.BACKFILL_STARTED, {"slots": 2})]

    def test_handler_may_emit_during_drain(self):
        bus = SignalBus()
        seen = []

        def relock(signal: Signal) -> None:
            seen.append(signal.type)
            if signal.type == SignalType.GAME_UNLOCKED:
                bus.emit(SignalType.GAME_LOCKED)

        bus.subscribe(relock)
        bus.emit(SignalType.GAME_UNLOCKED)
        bus.drain()
        assert seen == [SignalType.GAME_UNLOCKED, SignalType.GAME_LOCKED]

    def test_failing_handler_is_isolated(self):
        bus = SignalBus()
        seen = []

        def boom(_: Signal) -> None:
            raise ValueError("observer bug")

        bus.subscribe(boom)
        bus.subscribe(seen.append)
        bus.emit(SignalType.GAME_LOCKED)
        bus.drain()
        assert len(seen) == 1

    def test_clear_discards_queue(self):
        bus = SignalBus()
        bus.emit(SignalType.GAME_LOCKED)
        bus.clear()
        assert bus.drain() == []


class TestSubscription:
    def test_close_unregisters(self):
        bus = SignalBus()
        seen = []
        sub = bus.subscribe(seen.append, SignalType.GAME_LOCKED)
        assert bus.subscriber_count == 1
        sub.close()
        sub.close()
        assert sub.active is False
        assert bus.subscriber_count == 0
        bus.emit(SignalType.GAME_LOCKED)
        bus.drain()
        assert seen == []

    def test_context_manager(self):
        bus = SignalBus()
        with bus.subscribe(lambda s: None):
            assert bus.subscriber_count == 1
        assert bus.subscriber_count == 0

    def test_envelope(self):
        signal = Signal(SignalType.JOIN_DENIED, {"candidate_id": "p-1"})
        assert signal.envelope() == {"type": "join.denied", "data": {"candidate_id": "p-1"}}
