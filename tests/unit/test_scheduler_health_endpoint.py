"""Tests for health check endpoints."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from hearth.core.scheduler_tracker import JobTracker
from hearth.main import app


@pytest.fixture
def client() -> TestClient:
    """Create a test client for FastAPI app (lifespan not started)."""
    return TestClient(app)


@pytest.fixture
def tracker() -> JobTracker:
    return JobTracker()


@pytest.fixture
def install_container(monkeypatch, tracker):
    """Install a stand-in container on the app state."""

    def _install(*, database_ok: bool = True, running: bool = True) -> SimpleNamespace:
        container = SimpleNamespace(
            db=SimpleNamespace(ping=AsyncMock(return_value=database_ok)),
            tracker=tracker,
            schedulers=[
                SimpleNamespace(name="task_generation", is_running=running),
                SimpleNamespace(name="outbox_processor", is_running=running),
            ],
        )
        monkeypatch.setattr(app.state, "container", container, raising=False)
        return container

    return _install


@pytest.mark.unit
def test_health_endpoint_before_startup(client: TestClient) -> None:
    """Test that health endpoint answers before the container exists."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
def test_health_endpoint_reports_database_and_schedulers(client: TestClient, install_container) -> None:
    """Test health endpoint with a reachable database and running schedulers."""
    install_container()

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["schedulers"] == {"task_generation": True, "outbox_processor": True}


@pytest.mark.unit
def test_health_endpoint_unhealthy_without_database(client: TestClient, install_container) -> None:
    """Test health endpoint when the database does not answer."""
    install_container(database_ok=False)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["database"] == "unavailable"


@pytest.mark.unit
def test_scheduler_health_endpoint_starting(client: TestClient) -> None:
    """Test scheduler health endpoint before startup."""
    response = client.get("/health/scheduler")

    assert response.status_code == 503
    assert response.json() == {"status": "starting", "jobs": {}}


@pytest.mark.unit
def test_scheduler_health_endpoint_all_jobs_healthy(client: TestClient, install_container) -> None:
    """Test scheduler health endpoint when all jobs are healthy."""
    install_container()

    response = client.get("/health/scheduler")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert set(data["jobs"]) == {"task_generation", "outbox_processor"}
    assert data["jobs"]["outbox_processor"]["running"] is True


@pytest.mark.unit
async def test_scheduler_health_endpoint_degraded_with_failures(
    client: TestClient, install_container, tracker: JobTracker
) -> None:
    """Test scheduler health endpoint when jobs have failures."""
    install_container()
    await tracker.record_job_failure("outbox_processor", "database is locked")

    response = client.get("/health/scheduler")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "degraded"
    assert data["jobs"]["outbox_processor"]["consecutive_failures"] == 1
    assert data["jobs"]["outbox_processor"]["last_error"] == "database is locked"
