"""
Tests for the FastAPI application: health endpoints, validation errors and
router wiring.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from pdelivery.main import app


@pytest.fixture
def test_client() -> TestClient:
    """Client without lifespan; no database or escalation loop is started."""
    return TestClient(app)


# ============================================================================
# UNIT TESTS - Health Endpoints
# ============================================================================


class TestHealthEndpoints:
    """Test suite for health check and readiness endpoints."""

    def test_health_check_returns_200(self, test_client: TestClient):
        response = test_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "test"

    def test_liveness(self, test_client: TestClient):
        response = test_client.get("/live")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "alive"

    @patch("pdelivery.main.check_database_health", new_callable=AsyncMock)
    def test_ready_when_database_answers(self, mock_health, test_client: TestClient):
        mock_health.return_value = True

        response = test_client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "healthy"
        mock_health.assert_awaited_once_with(max_retries=1)

    @patch("pdelivery.main.check_database_health", new_callable=AsyncMock)
    def test_not_ready_without_database(self, mock_health, test_client: TestClient):
        mock_health.return_value = False

        response = test_client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["dependencies_ready"] is False

    def test_notification_counters(self, test_client: TestClient):
        response = test_client.get("/health/notifications")

        assert response.status_code == status.HTTP_200_OK
        assert set(response.json()) == {"enabled", "delivered", "failed", "pending"}


# ============================================================================
# UNIT TESTS - Request Handling
# ============================================================================


class TestRequestHandling:
    def test_request_id_header_is_echoed(self, test_client: TestClient):
        response = test_client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers.get("X-Request-ID") == "req-123"

    def test_business_routes_require_token(self, test_client: TestClient):
        for path in (
            "/api/v1/orders/",
            "/api/v1/monitoring/board",
            "/api/v1/financial/cash-flow",
            "/api/v1/customers/",
            "/api/v1/priority-settings/",
        ):
            response = test_client.get(path)
            assert response.status_code == status.HTTP_401_UNAUTHORIZED, path
