"""Service info, health probe and the database-unavailable mapping."""
import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession


def test_root_lists_endpoints(client):
    data = client.get("/").json()
    assert data["message"] == "Wildlife Census API"
    assert data["endpoints"]["census"] == "/census"


def test_health_reports_connected_database(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/nowhere")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


@pytest.fixture
def exhausted_pool(monkeypatch):
    async def pool_timeout(self, *args, **kwargs):
        raise sa_exc.TimeoutError("QueuePool limit of size 5 overflow 5 reached")

    monkeypatch.setattr(AsyncSession, "execute", pool_timeout)


class TestDatabaseUnavailable:
    def test_write_returns_503(self, client, tiger_setup, exhausted_pool):
        response = client.post("/census", json=dict(tiger_setup, count=100, census_date="2024-04-20"))
        assert response.status_code == 503
        assert response.json()["error"] == "Database connection unavailable"
        assert "QueuePool" in response.json()["details"]

    def test_read_returns_503(self, client, exhausted_pool):
        response = client.get("/species")
        assert response.status_code == 503
        assert response.json() == {"error": "Database unavailable"}

    def test_health_returns_503(self, client, exhausted_pool):
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["error"].startswith("Database error")

