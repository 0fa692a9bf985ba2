from unittest.mock import patch

import pytest
from django.core.cache.backends.locmem import LocMemCache

pytestmark = pytest.mark.integration


class TestHealthCheck:
    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert set(data["services"]) == {"database", "cache"}

    def test_health_check_reports_database_status(self, client):
        data = client.get("/health").json()
        assert data["services"]["database"]["status"] == "up"
        assert "response_time_ms" in data["services"]["database"]

    def test_cache_down_is_unhealthy(self, client):
        # The cache also holds throttle counters and the auto-cancel lock.
        with patch.object(LocMemCache, "get", return_value=None):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["services"]["cache"]["status"] == "down"


class TestMe:
    def test_staff_flag(self, staff_client):
        data = staff_client.get("/api/v1/me").json()
        assert data["username"] == "kasir"
        assert data["is_staff"] is True

    def test_customer_is_not_staff(self, customer_client):
        assert customer_client.get("/api/v1/me").json()["is_staff"] is False
