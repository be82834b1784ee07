"""
Tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient

from network_monitor.api import create_app

from tests.network_monitor.fakes import FakeClient, bootstrap_failure, fake_discovery


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def client(make_service):
    with TestClient(create_app(make_service())) as test_client:
        yield test_client


# ============================================================
# ROUTES
# ============================================================

class TestRoutes:
    """Tests for the read routes."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["poller_running"] is False
        assert data["total_cycles"] == 0

    def test_network(self, client):
        response = client.get("/api/network")

        assert response.status_code == 200
        assert response.json()["overview"]["online_pnodes"] == 3

    def test_nodes(self, client):
        response = client.get("/api/nodes")

        assert response.status_code == 200
        data = response.json()
        assert len(data["nodes"]) == data["total"] == 3
        assert all("health" in node for node in data["nodes"])

    def test_events(self, client):
        client.get("/api/network")

        response = client.get("/api/events", params={"limit": 5})

        assert response.status_code == 200
        assert response.json()["count"] == 1

    @pytest.mark.parametrize("limit", [0, 501])
    def test_limit_is_validated(self, client, limit):
        assert client.get("/api/events", params={"limit": limit}).status_code == 422
        assert client.get("/api/alerts", params={"limit": limit}).status_code == 422

    def test_alerts(self, client):
        response = client.get("/api/alerts")

        assert response.status_code == 200
        assert response.json()["alerts"] == []

    def test_refresh(self, client):
        response = client.post("/api/refresh")

        assert response.status_code == 200
        assert response.json()["cached"] is False


# ============================================================
# ERRORS
# ============================================================

class TestErrorStatus:
    """Tests for error status mapping."""

    def test_bootstrap_failure_is_503(self, make_service):
        service = make_service(discovery=fake_discovery(error=bootstrap_failure()))
        with TestClient(create_app(service)) as client:
            response = client.get("/api/network")

        assert response.status_code == 503
        assert response.json()["status"] == "bootstrap_failed"
        assert len(response.json()["details"]) == 2

    def test_unexpected_failure_is_500(self, make_service):
        service = make_service(discovery=fake_discovery(error=RuntimeError("boom")))
        with TestClient(create_app(service)) as client:
            response = client.get("/api/nodes")

        assert response.status_code == 500
        assert response.json()["status"] == "internal_error"


# ============================================================
# LIFESPAN
# ============================================================

class TestLifespan:
    """Tests for poller management."""

    def test_managed_poller_starts_and_closes(self, make_service):
        rpc_client = FakeClient()
        service = make_service(client=rpc_client)

        with TestClient(create_app(service, manage_poller=True)) as client:
            assert service.poller.is_running
            assert client.get("/health").json()["poller_running"] is True

        assert not service.poller.is_running
        assert rpc_client.closed
