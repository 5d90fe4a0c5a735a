"""
Tests for the HTTP surface.

The app's lifespan is not run; the store and orchestrator under test are
placed on app.state directly.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import FakeSource, add_subscription, make_item
from gamenews.errors import StoreUnavailableError
from gamenews.main import app
from gamenews.services.scheduler import PollingOrchestrator


@pytest.fixture
async def orchestrator(store, engine):
    return PollingOrchestrator(
        store,
        {
            "cs2": FakeSource("cs2", items=[make_item("a1"), make_item("a2")]),
            "lol": FakeSource("lol", error=RuntimeError("feed down")),
        },
        engine,
    )


@pytest.fixture
async def client(store, orchestrator):
    app.state.store = store
    app.state.orchestrator = orchestrator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestPublisherRoutes:
    async def test_list_publishers(self, client):
        response = await client.get("/api/v1/publishers")

        assert response.status_code == 200
        ids = {p["publisher_id"] for p in response.json()}
        assert ids == {"lol", "valorant", "fortnite", "minecraft", "cs2"}

    async def test_filter_by_status(self, client, store):
        await store.mark_publisher_error("lol", "feed down")

        response = await client.get("/api/v1/publishers", params={"status": "error"})

        assert response.status_code == 200
        assert [p["publisher_id"] for p in response.json()] == ["lol"]

    async def test_get_publisher(self, client):
        response = await client.get("/api/v1/publishers/cs2")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Counter-Strike 2"
        assert body["status"] == "active"

    async def test_unknown_publisher(self, client):
        response = await client.get("/api/v1/publishers/halo")
        assert response.status_code == 404

        response = await client.get("/api/v1/publishers/halo/news")
        assert response.status_code == 404

    async def test_latest_news(self, client, store):
        for n in range(7):
            await store.insert_if_absent(make_item(f"n{n}"))

        response = await client.get("/api/v1/publishers/cs2/news")
        assert response.status_code == 200
        assert len(response.json()) == 5

        response = await client.get("/api/v1/publishers/cs2/news", params={"limit": 2})
        assert len(response.json()) == 2


class TestAdminRoutes:
    async def test_check_updates(self, client, database, destination):
        await add_subscription(database, "g1", "c1")

        response = await client.post("/api/v1/admin/check-updates")

        assert response.status_code == 200
        outcomes = {o["publisher_id"]: o for o in response.json()["outcomes"]}
        assert outcomes["cs2"]["inserted"] == 2
        assert outcomes["cs2"]["deliveries"] == 2
        assert outcomes["lol"]["ok"] is False
        assert len(destination.sent) == 2

        response = await client.get("/api/v1/publishers/lol")
        assert response.json()["status"] == "error"

    async def test_check_single_publisher(self, client):
        response = await client.post("/api/v1/admin/check-updates", params={"publisher_id": "cs2"})

        assert response.status_code == 200
        assert [o["publisher_id"] for o in response.json()["outcomes"]] == ["cs2"]

    async def test_check_unknown_publisher(self, client):
        response = await client.post("/api/v1/admin/check-updates", params={"publisher_id": "halo"})
        assert response.status_code == 404

    async def test_check_with_store_down(self, client, store):
        store.insert_if_absent = AsyncMock(side_effect=StoreUnavailableError("database is gone"))

        response = await client.post("/api/v1/admin/check-updates", params={"publisher_id": "cs2"})

        assert response.status_code == 503
        status = (await client.get("/api/v1/scheduler")).json()
        assert status["halted"] is True

    async def test_scheduler_status(self, client):
        response = await client.get("/api/v1/scheduler")

        assert response.status_code == 200
        body = response.json()
        assert body["running"] is False
        assert set(body["publishers"]) == {"cs2", "lol"}
