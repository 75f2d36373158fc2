"""
Tests: health, version and cache stats endpoints
"""
import pytest
from fastapi.testclient import TestClient

from app.cache import CacheService
from app.main import app, get_cache_service

client = TestClient(app)


@pytest.fixture(autouse=True)
def local_cache():
    service = CacheService()
    app.dependency_overrides[get_cache_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


def test_health_endpoint_returns_200():
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_reports_cache_mode():
    """Without Redis configured the cache runs in-memory only"""
    data = client.get("/health").json()
    assert data["status"] == "ok"
    assert data["cache"] == "unconfigured"


def test_version_endpoint():
    data = client.get("/version").json()
    assert data["name"] == "Live Chat Relay"


def test_cache_stats_endpoint():
    data = client.get("/cache/stats").json()
    assert data["misses"] == 0
    assert data["store"]["local"]["max_entries"] == 100
    assert data["coalescer"]["active_requests"] == 0
