# =============================================================================
# Unit Tests — HTTP Routes
# =============================================================================
#
# Each test builds its own app via create_app() with an isolated registry,
# a mocked upstream client and a build function backed by the in-memory
# fakes. No database, embeddings API or Peacock API is contacted.
# =============================================================================

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from finance_fixtures import FakeEmbedder, FakeFinanceSource

from peacock_agent.errors import DataAccessError
from peacock_agent.main import create_app
from peacock_agent.services.memory_builder import build_finance_memory_store
from peacock_agent.services.store_registry import MemoryStoreRegistry, RegistryState


async def _fake_build():
    return await build_finance_memory_store(FakeFinanceSource(), FakeEmbedder())


async def _failing_build():
    raise DataAccessError("Failed to fetch accounts from database")


def _api_client() -> MagicMock:
    client = MagicMock()
    client.clear_cache.return_value = 3
    client.aclose = AsyncMock()
    return client


def _app(build=_fake_build, registry=None, api_client=None, bootstrap=False):
    return create_app(
        registry=registry or MemoryStoreRegistry(),
        api_client=api_client or _api_client(),
        memory_build=build,
        bootstrap_memory=bootstrap,
    )


class TestHealth:

    def test_health(self):
        response = TestClient(_app()).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["service"] == "Peacock Club Finance Agent"


class TestMemoryRoutes:

    def test_status_before_build(self):
        response = TestClient(_app()).get("/memory/status")

        assert response.status_code == 200
        assert response.json() == {
            "state": "uninitialized",
            "building": False,
            "counts": None,
            "last_error": None,
        }

    def test_search_unavailable_before_build(self):
        response = TestClient(_app()).post("/memory/search", json={"query": "who paid?"})
        assert response.status_code == 503

    def test_rebuild_then_search(self):
        client = TestClient(_app())

        rebuild = client.post("/memory/rebuild")
        assert rebuild.status_code == 200
        assert rebuild.json() == {
            "state": "ready",
            "counts": {"docs": 11, "account": 3, "tx": 4, "month": 4},
        }

        search = client.post("/memory/search", json={"query": "Asha Rao", "k": 2})
        assert search.status_code == 200
        body = search.json()
        assert body["k"] == 2
        assert len(body["results"]) == 2
        assert {"doc_id", "doc_type", "label", "text", "similarity_score", "metadata"} <= set(
            body["results"][0]
        )

        status = client.get("/memory/status").json()
        assert status["state"] == "ready"
        assert status["counts"]["docs"] == 11

    def test_search_validates_k(self):
        client = TestClient(_app())
        assert client.post("/memory/search", json={"query": "x", "k": 13}).status_code == 422
        assert client.post("/memory/search", json={"query": "x", "k": 0}).status_code == 422

    def test_failed_rebuild_is_503(self):
        registry = MemoryStoreRegistry()
        client = TestClient(_app(build=_failing_build, registry=registry))

        response = client.post("/memory/rebuild")

        assert response.status_code == 503
        assert "Failed to fetch accounts" in response.json()["detail"]
        assert registry.state == RegistryState.FAILED


class TestCacheClear:

    def test_clears_cache_and_session(self):
        api_client = _api_client()
        response = TestClient(_app(api_client=api_client)).post("/cache/clear")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Cache and session token cleared successfully",
            "cleared_entries": 3,
        }
        api_client.clear_cache.assert_called_once()
        api_client.clear_session_token.assert_called_once()


class TestLifespan:

    def test_bootstrap_builds_memory(self):
        registry = MemoryStoreRegistry()
        api_client = _api_client()

        with TestClient(_app(registry=registry, api_client=api_client, bootstrap=True)):
            assert registry.state == RegistryState.READY

        api_client.aclose.assert_awaited_once()

    def test_bootstrap_failure_degrades(self):
        registry = MemoryStoreRegistry()

        with TestClient(_app(build=_failing_build, registry=registry, bootstrap=True)) as client:
            assert registry.state == RegistryState.FAILED
            assert client.get("/health").status_code == 200
            assert client.post("/memory/search", json={"query": "x"}).status_code == 503
