"""Tests for common router."""

from fastapi.testclient import TestClient

from api.app import create_app
from api.routers.common import HealthResponse
from api.services.session_registry import SessionRegistry
from orchestrator.config import Settings
from tests.utils.fakes import FakeGenerationBackend, FakeStreamingBackend


def test_health_check(settings: Settings) -> None:
    """Test health check endpoint."""
    registry = SessionRegistry(
        settings, FakeStreamingBackend(), FakeGenerationBackend()
    )
    with TestClient(create_app(settings, registry=registry)) as client:
        client.post("/v1/sessions", json={})
        response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["sessions"] == 1
    assert "timestamp" in data


def test_health_response_model() -> None:
    """Test health response model structure."""
    response = HealthResponse(
        status="healthy",
        version="1.0.0",
        timestamp="2024-01-01T00:00:00",
        sessions=0,
    )

    assert response.status == "healthy"
    assert response.sessions == 0
