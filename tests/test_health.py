"""Tests for health, metrics and database diagnostics."""

import pytest
from httpx import AsyncClient

from fittrack.core.config import get_settings
from fittrack.models.exercise import Exercise
from fittrack.models.user import User
from fittrack.observability import MetricsCollector


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_metrics_exposition(self, client: AsyncClient):
        await client.get("/health")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert 'http_requests_total{method="GET",path="/health",status="200"}' in response.text


class TestMetricsCollector:
    def test_counts_session_writes_and_sets(self):
        metrics = MetricsCollector()
        metrics.observe_session_write(True, 12.0, 4)
        metrics.observe_session_write(False, 30.0)

        rendered = metrics.render_prometheus()

        assert 'workout_session_writes_total{status="success"} 1' in rendered
        assert 'workout_session_writes_total{status="error"} 1' in rendered
        assert "workout_session_sets_total 4" in rendered

    def test_external_api_labels(self):
        metrics = MetricsCollector()
        metrics.observe_external_api("spotify", "search", 200, 80.0)

        rendered = metrics.render_prometheus()

        assert 'provider="spotify"' in rendered
        assert 'operation="search"' in rendered


class TestDebugDatabase:
    """Tests for the database diagnostics endpoint."""

    async def test_disabled_by_default(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(get_settings(), "debug", False)
        monkeypatch.setattr(get_settings(), "debug_secret", None)

        response = await client.get("/api/debug/db")

        assert response.status_code == 403
        assert response.json()["error"] == "Debug endpoints are disabled"

    async def test_wrong_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(get_settings(), "debug", False)
        monkeypatch.setattr(get_settings(), "debug_secret", "let-me-in")

        response = await client.get("/api/debug/db", headers={"X-Debug-Secret": "nope"})

        assert response.status_code == 403

    @pytest.mark.parametrize("debug,header", [(True, None), (False, "let-me-in")])
    async def test_counts(
        self,
        client: AsyncClient,
        test_user: User,
        exercises: list[Exercise],
        monkeypatch,
        debug,
        header,
    ):
        monkeypatch.setattr(get_settings(), "debug", debug)
        monkeypatch.setattr(get_settings(), "debug_secret", "let-me-in")
        headers = {"X-Debug-Secret": header} if header else {}

        response = await client.get("/api/debug/db", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["databaseConnected"] is True
        assert data["counts"] == {
            "users": 1,
            "exercises": 5,
            "workouts": 0,
            "workoutSessions": 0,
            "progress": 0,
        }
