"""
Tests for the service boundary.

============================================================
PURPOSE
============================================================
- Every call returns a dict; failures become error objects
- Results are served from cache while fresh
- Response annotations (timestamp, responseTime, cached)

============================================================
"""

import pytest

from network_monitor.service import STATUS_BOOTSTRAP_FAILED, STATUS_INTERNAL_ERROR

from tests.network_monitor.fakes import bootstrap_failure, fake_discovery, live_roster


# ============================================================
# DATA RESPONSES
# ============================================================

class TestNetworkService:
    """Tests for NetworkService data calls."""

    @pytest.mark.asyncio
    async def test_get_network(self, make_service):
        response = await make_service().get_network()

        assert response["overview"]["total_pnodes"] == 3
        assert response["cached"] is False
        assert isinstance(response["timestamp"], int)
        assert isinstance(response["responseTime"], int)
        assert "error" not in response

    @pytest.mark.asyncio
    async def test_get_nodes(self, make_service):
        response = await make_service().get_nodes()

        assert response["total"] == 3
        assert response["online"] == 3
        assert response["offline"] == 0
        assert response["public"] == 3
        assert response["private"] == 0
        assert response["reporting"] == 3
        node = response["nodes"][0]
        assert node["address"] == "10.0.0.0:9001"
        assert node["online"] is True
        assert node["stats"]["cpu_percent"] == 20.0
        assert 0 <= node["health"]["overall"] <= 100

    @pytest.mark.asyncio
    async def test_events_and_alerts(self, make_service):
        service = make_service()
        await service.get_network()

        events = await service.get_events(limit=10)
        alerts = await service.get_alerts()

        assert events["count"] == 1
        assert events["events"][0]["type"] == "bootstrap"
        assert alerts["alerts"] == []
        assert alerts["count"] == 0

    @pytest.mark.asyncio
    async def test_events_before_first_cycle(self, make_service):
        response = await make_service().get_events()

        assert response["events"] == []
        assert response["count"] == 0

    @pytest.mark.asyncio
    async def test_zero_limit(self, make_service):
        service = make_service()
        await service.get_network()

        assert (await service.get_events(limit=0))["count"] == 0


# ============================================================
# CACHING
# ============================================================

class TestCaching:
    """Tests for the result cache."""

    @pytest.mark.asyncio
    async def test_fresh_result_is_cached(self, make_service):
        discovery = fake_discovery()
        service = make_service(discovery=discovery, cache_ttl_seconds=60)

        first = await service.get_network()
        second = await service.get_nodes()

        assert first["cached"] is False
        assert second["cached"] is True
        assert discovery.discover.await_count == 1

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, make_service):
        discovery = fake_discovery()
        service = make_service(discovery=discovery, cache_ttl_seconds=60)

        await service.get_network()
        response = await service.refresh()

        assert response["cached"] is False
        assert discovery.discover.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_cache(self, make_service):
        discovery = fake_discovery()
        service = make_service(discovery=discovery, cache_ttl_seconds=0)

        await service.get_network()
        await service.get_network()

        assert discovery.discover.await_count == 2


# ============================================================
# ERROR OBJECTS
# ============================================================

class TestErrors:
    """Tests for structured error responses."""

    @pytest.mark.asyncio
    async def test_bootstrap_failure(self, make_service):
        service = make_service(discovery=fake_discovery(error=bootstrap_failure()))

        response = await service.get_network()

        assert response["error"] == "Failed to fetch network overview"
        assert response["status"] == STATUS_BOOTSTRAP_FAILED
        assert response["details"] == [
            "10.0.0.0:6000: refused",
            "10.0.0.1:6000: Request timeout after 8.0s",
        ]
        assert isinstance(response["responseTime"], int)
        assert "timestamp" in response

    @pytest.mark.asyncio
    async def test_unexpected_failure(self, make_service):
        service = make_service(discovery=fake_discovery(error=RuntimeError("boom")))

        response = await service.get_nodes()

        assert response["error"] == "Failed to fetch pNode list"
        assert response["status"] == STATUS_INTERNAL_ERROR
        assert response["details"] == ["RuntimeError: boom"]
        assert response["message"] == "boom"

    @pytest.mark.asyncio
    async def test_failure_does_not_poison_later_calls(self, make_service):
        discovery = fake_discovery(error=bootstrap_failure())
        service = make_service(discovery=discovery)
        assert "error" in await service.get_network()

        discovery.discover.side_effect = None
        discovery.discover.return_value = live_roster()

        response = await service.get_network()

        assert "error" not in response
        assert response["overview"]["total_pnodes"] == 3
