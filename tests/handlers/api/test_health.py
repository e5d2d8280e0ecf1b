"""Tests for the health and status endpoints."""

import pytest
from fastapi.testclient import TestClient

from vmclaim.api.app import create_app
from vmclaim.execution.retry_policy import RetryPolicy
from vmclaim.utils.exceptions import ProviderError


@pytest.fixture
def app_scheduler(scheduler):
    scheduler.policy = RetryPolicy()
    return scheduler


class TestHealth:
    """Tests for GET /health."""

    def test_health_ok(self, reconciler, app_scheduler):
        """Health reports ok with a timestamp."""
        app = create_app(reconciler, app_scheduler, start_loop=False)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "T" in data["timestamp"]

    @pytest.mark.asyncio
    async def test_health_ok_after_failed_tick(self, reconciler, gateway, app_scheduler):
        """Health does not reflect reconciliation failures."""
        gateway.errors["list_active"] = ProviderError("denied", status=401, code="NotAuthenticated")
        await reconciler.run_check()

        app = create_app(reconciler, app_scheduler, start_loop=False)
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestStatus:
    """Tests for GET /status."""

    def test_initial_status(self, reconciler, app_scheduler):
        """Before any tick the counters are zero."""
        app = create_app(reconciler, app_scheduler, start_loop=False)

        with TestClient(app) as client:
            data = client.get("/status").json()

        assert data["attempts"] == 0
        assert data["last_outcome"] is None
        assert data["halted"] is False

    @pytest.mark.asyncio
    async def test_status_after_tick(self, reconciler, gateway, app_scheduler):
        """Status reflects the last tick."""
        gateway.errors["create"] = ProviderError("Out of host capacity.", status=500, code="InternalError")
        await reconciler.run_check()

        app = create_app(reconciler, app_scheduler, start_loop=False)
        with TestClient(app) as client:
            data = client.get("/status").json()

        assert data["attempts"] == 1
        assert data["last_outcome"] == "capacity_exhausted"
        assert data["last_error"] == "Out of host capacity."


class TestLifespan:
    """Startup arms the loop, shutdown cancels it."""

    def test_starts_and_stops_loop(self, reconciler, app_scheduler):
        """The first tick is armed on startup and the timer cancelled on shutdown."""
        app = create_app(reconciler, app_scheduler)

        with TestClient(app):
            app_scheduler.schedule_first.assert_called_once_with(reconciler.run_check)
            app_scheduler.cancel.assert_not_awaited()

        app_scheduler.cancel.assert_awaited_once()

    def test_start_loop_disabled(self, reconciler, app_scheduler):
        """Tests can host the app without arming the loop."""
        app = create_app(reconciler, app_scheduler, start_loop=False)

        with TestClient(app):
            pass

        app_scheduler.schedule_first.assert_not_called()
