"""API tests: the authority admin routes and SSE filters, served in-process."""

import pytest
from httpx import ASGITransport, AsyncClient

from matchgate.config import Settings
from matchgate.core.clock import ManualClock
from matchgate.core.discovery import InMemoryDiscoveryRecord
from matchgate.core.engine import MatchAdmissionEngine
from matchgate.main import create_app
from matchgate.models.backfill import BackfillConfig
from matchgate.models.match import GamePhase


@pytest.fixture
def api_engine() -> MatchAdmissionEngine:
    engine = MatchAdmissionEngine(
        backfill_config=BackfillConfig(),
        max_players=8,
        clock=ManualClock(start=0.0),
        discovery_record=InMemoryDiscoveryRecord(),
    )
    engine.set_current_players(4)
    return engine


@pytest.fixture
async def client(settings, api_engine):
    app = create_app(settings, engine=api_engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestStatus:
    async def test_health(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"

    async def test_match_status(self, client):
        r = await client.get("/api/match")
        assert r.status_code == 200
        body = r.json()
        assert body["phase"] == "lobby"
        assert body["available_slots"] == 4
        assert body["active_backfill"] is None

    async def test_admission_check(self, client, api_engine):
        r = await client.get("/api/match/admission", params={"candidate_id": "p-1"})
        assert r.json() == {
            "candidate_id": "p-1",
            "result": "allowed",
            "allowed": True,
            "message": "Join allowed",
        }

        api_engine.lock()
        r = await client.get("/api/match/admission")
        assert r.json()["result"] == "denied_locked"
        assert r.json()["allowed"] is False

    async def test_history(self, client, api_engine):
        api_engine.process_join_in_progress("p-1", "Ana")
        r = await client.get("/api/match/history")
        body = r.json()
        assert body["limit"] == 1000
        assert body["dropped"] == 0
        assert body["records"][0]["candidate_id"] == "p-1"


class TestPhaseAndLock:
    async def test_set_phase(self, client, api_engine):
        r = await client.post("/api/match/phase", json={"phase": "in_progress"})
        assert r.json() == {"phase": "in_progress", "changed": True}
        assert api_engine.phase == GamePhase.IN_PROGRESS

        r = await client.post("/api/match/phase", json={"phase": "in_progress"})
        assert r.json()["changed"] is False

    async def test_unknown_phase_is_422(self, client):
        r = await client.post("/api/match/phase", json={"phase": "halftime"})
        assert r.status_code == 422

    async def test_lock_unlock(self, client):
        r = await client.post("/api/match/lock")
        assert r.json() == {"locked": True, "changed": True}
        r = await client.post("/api/match/lock")
        assert r.json() == {"locked": True, "changed": False}
        r = await client.post("/api/match/unlock")
        assert r.json() == {"locked": False, "changed": True}


class TestBackfill:
    async def test_request_and_cancel(self, client):
        r = await client.post("/api/match/backfill", json={"slots": 2, "region": "eu"})
        assert r.status_code == 200
        created = r.json()
        assert created["status"] == "requesting"
        assert created["slots_needed"] == 2
        assert created["region"] == "eu"

        r = await client.post("/api/match/backfill", json={"slots": 3})
        assert r.json()["id"] == created["id"]

        r = await client.delete("/api/match/backfill")
        assert r.status_code == 200
        assert r.json()["status"] == "cancelled"

        r = await client.delete("/api/match/backfill")
        assert r.status_code == 404

    async def test_zero_slots_is_422(self, client):
        r = await client.post("/api/match/backfill", json={"slots": 0})
        assert r.status_code == 422

    async def test_refused_when_locked(self, client, api_engine):
        api_engine.lock()
        r = await client.post("/api/match/backfill", json={"slots": 1})
        assert r.status_code == 409
        assert "locked" in r.json()["detail"]

    async def test_all_slots(self, client):
        r = await client.post("/api/match/backfill/all")
        assert r.status_code == 200
        assert r.json()["slots_needed"] == 4

    async def test_all_slots_when_full(self, client, api_engine):
        api_engine.set_current_players(8)
        r = await client.post("/api/match/backfill/all")
        assert r.status_code == 409


class TestReplica:
    async def test_replica_refuses_writes(self):
        settings = Settings(matchgate_is_authority=False)
        app = create_app(settings)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            r = await c.post("/api/match/lock")
            assert r.status_code == 409
            r = await c.get("/api/match")
            assert r.json()["is_authority"] is False


class TestEvents:
    async def test_unknown_event_type_is_400(self, client):
        r = await client.get("/api/events/stream", params={"event_type": "nope"})
        assert r.status_code == 400

    async def test_events_health(self, client):
        r = await client.get("/api/events/health")
        assert r.json()["subscribers"] == 0
