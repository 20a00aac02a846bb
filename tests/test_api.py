"""
Tests for the rescue API routes.

The engine dependency is overridden so the app's lifespan (config loading,
background jobs) never runs.
"""

import pytest
from uuid import uuid4
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from memory_rescue.api.main import app
from memory_rescue.api.routes import rescue
from memory_rescue.database.memory_store import InMemoryStore
from memory_rescue.engine.rescue_engine import TemporalRescueEngine
from memory_rescue.responders.scripted import ScriptedResponder


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(quiet_config, strong_response, store):
    return TemporalRescueEngine(quiet_config, store=store, responder=ScriptedResponder(default=strong_response))


@pytest.fixture
def client(engine):
    app.dependency_overrides[rescue.get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed(store, item):
    # InMemoryStore.save only copies; drive it synchronously for route tests
    store._items[item.id] = item.model_copy(deep=True)
    return item


class TestRescueRoutes:
    """Tests for /rescue endpoints."""

    def test_root_health_check(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_status(self, client):
        response = client.get("/rescue/status")

        assert response.status_code == 200
        body = response.json()
        assert set(body) >= {"watchdog", "scheduler", "metrics"}

    def test_cycles(self, client):
        response = client.get("/rescue/cycles")

        assert response.status_code == 200
        assert response.json()["imminent"]["max_batch_size"] == 20

    def test_assess_and_run_cycle(self, client, store, make_item):
        seed(store, make_item(hours_ago=5))

        stats = client.post("/rescue/assess").json()
        assert stats["requests_emitted"] == 1

        summary = client.post("/rescue/cycles/due/run").json()
        assert summary["tier"] == "due"
        assert summary["successes"] == 1

    def test_unknown_tier_rejected(self, client):
        assert client.post("/rescue/cycles/someday/run").status_code == 422

    def test_assess_store_outage_returns_503(self, client, store):
        store.available = False
        assert client.post("/rescue/assess").status_code == 503

    def test_cycle_abort_returns_503(self, client, engine):
        from memory_rescue.models.rescue import BatchSummary
        engine.scheduler.run_cycle = AsyncMock(
            return_value=BatchSummary(tier="due", aborted=True, error="store down")
        )

        response = client.post("/rescue/cycles/due/run")

        assert response.status_code == 503
        assert response.json()["detail"] == "store down"

    def test_item_decay(self, client, store, make_item):
        item = seed(store, make_item(hours_ago=30))

        response = client.get(f"/rescue/items/{item.id}/decay")

        assert response.status_code == 200
        assert response.json()["evaluation"]["tier"] == "overdue"

    def test_item_decay_not_found(self, client):
        assert client.get(f"/rescue/items/{uuid4()}/decay").status_code == 404

    def test_rescue_item(self, client, store, make_item):
        item = seed(store, make_item(hours_ago=30))

        response = client.post(f"/rescue/items/{item.id}/rescue")

        assert response.status_code == 200
        assert response.json()[0]["kind"] == "success"

    def test_rescue_missing_item(self, client):
        assert client.post(f"/rescue/items/{uuid4()}/rescue").status_code == 404

    def test_rescue_store_outage(self, client, store):
        store.available = False
        assert client.post(f"/rescue/items/{uuid4()}/rescue").status_code == 503

    def test_metrics(self, client, store, make_item):
        seed(store, make_item(hours_ago=5))
        client.post("/rescue/assess")
        client.post("/rescue/cycles/due/run")

        body = client.get("/rescue/metrics").json()

        assert body["summary"]["tiers"]["due"]["attempted"] == 1
        assert len(body["recent"]) == 1
        assert isinstance(body["log_files"], list)


class TestUninitialized:
    def test_engine_missing_returns_503(self):
        app.dependency_overrides.clear()
        assert TestClient(app).get("/rescue/status").status_code == 503


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
