"""Unit tests for middleware functionality."""

import uuid
from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(app) -> TestClient:
    """Create test client."""
    return TestClient(app)


class TestRequestCorrelationId:
    """Correlation id assigned by the request context middleware."""

    def test_generates_uuid_when_no_header(self, client: TestClient) -> None:
        response = client.get("/health/live")

        assert response.status_code == 200
        uuid.UUID(response.headers["X-Request-ID"])

    def test_uses_existing_header(self, client: TestClient) -> None:
        response = client.get("/health/live", headers={"X-Request-ID": "test-correlation-123"})

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "test-correlation-123"

    def test_header_on_api_routes(self, client: TestClient) -> None:
        response = client.get(
            "/api/v1/captain/trips/trip-1/progress", headers={"X-Request-ID": "trip-req"}
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "trip-req"


class TestRequestLogging:
    """Start and completion events logged by the request context middleware."""

    @patch("ferry_captain.core.logging.get_logger")
    def test_logs_request_start_and_completion(
        self, mock_get_logger: Any, client: TestClient
    ) -> None:
        mock_logger = mock_get_logger.return_value

        response = client.get("/health/live", headers={"X-Request-ID": "logged-req"})

        assert response.status_code == 200
        assert mock_logger.info.call_count == 2

        start_call = mock_logger.info.call_args_list[0]
        assert start_call[1]["method"] == "GET"
        assert start_call[1]["path"] == "/health/live"
        assert start_call[1]["correlation_id"] == "logged-req"

        completion_call = mock_logger.info.call_args_list[1]
        assert completion_call[1]["status_code"] == 200
        assert isinstance(completion_call[1]["duration_ms"], int)
        assert completion_call[1]["duration_ms"] >= 0
