"""Tests for health check API endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient


def patch_checks(database: bool, cache: bool):
    return (
        patch("signalboard.api.routes.health.db_healthcheck", AsyncMock(return_value=database)),
        patch("signalboard.api.routes.health.valkey_healthcheck", AsyncMock(return_value=cache)),
    )


class TestHealthEndpoint:
    """Tests for GET /health."""

    @pytest.mark.parametrize(
        "database,cache,expected",
        [
            (True, True, "healthy"),
            (True, False, "degraded"),
            (False, True, "unhealthy"),
        ],
    )
    def test_overall_status(self, client: TestClient, database, cache, expected):
        db_patch, cache_patch = patch_checks(database, cache)
        with db_patch, cache_patch:
            response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == expected
        assert data["checks"] == {"database": database, "cache": cache}
        assert "version" in data


class TestReadinessEndpoint:
    """Tests for GET /health/ready."""

    def test_ready_when_database_up(self, client: TestClient):
        with patch("signalboard.api.routes.health.db_healthcheck", AsyncMock(return_value=True)):
            response = client.get("/health/ready")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "ready"}

    def test_not_ready_without_database(self, client: TestClient):
        with patch("signalboard.api.routes.health.db_healthcheck", AsyncMock(return_value=False)):
            response = client.get("/health/ready")
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


class TestLivenessEndpoint:
    """Tests for GET /health/live."""

    def test_live_returns_alive_status(self, client: TestClient):
        response = client.get("/health/live")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "alive"

    def test_sets_request_id_and_security_headers(self, client: TestClient):
        response = client.get("/health/live", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
