"""Unit tests for health endpoints."""

import pytest
from fastapi.testclient import TestClient


@pytest.mark.unit
def test_health_live(app):
    """Test health live endpoint."""
    client = TestClient(app)
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.unit
def test_health_ready_with_backend(app):
    client = TestClient(app)
    response = client.get("/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.unit
def test_health_ready_without_backend(unconfigured_app):
    """Test health ready endpoint without a backend."""
    client = TestClient(unconfigured_app)
    response = client.get("/health/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["detail"]["status"] == "unready"
    assert data["detail"]["errors"] == ["backend_not_configured"]
