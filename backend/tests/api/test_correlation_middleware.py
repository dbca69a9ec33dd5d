"""Tests for correlation ID middleware and error responses.

Verifies:
- X-Request-ID header in responses
- Custom correlation ID echoing
- Debug ID in error responses without leaking store details
- Different correlation IDs for different requests
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from mission_control.core.exceptions import StoreError
from mission_control.main import app
from mission_control.middleware.correlation import is_acceptable_request_id
from mission_control.services.proposal_service import ProposalService

pytestmark = pytest.mark.integration


def test_response_includes_correlation_id_header():
    """Every API response should include X-Request-ID header with valid UUID."""
    client = TestClient(app)

    response = client.get("/api/health")

    assert "x-request-id" in response.headers
    correlation_id = response.headers["x-request-id"]
    try:
        uuid.UUID(correlation_id)
    except ValueError:
        raise AssertionError(f"X-Request-ID header value '{correlation_id}' is not a valid UUID")


def test_custom_correlation_id_echoed():
    """Client-provided X-Request-ID should be echoed back in response."""
    client = TestClient(app)
    custom_id = "custom-id-123"

    response = client.get("/api/health", headers={"X-Request-ID": custom_id})

    assert response.headers["x-request-id"] == custom_id


def test_different_requests_get_different_ids():
    client = TestClient(app)

    id1 = client.get("/api/health").headers["x-request-id"]
    id2 = client.get("/api/health").headers["x-request-id"]

    assert id1 != id2, "Two separate requests should have different correlation IDs"


def test_domain_error_response_includes_debug_id(api_client):
    response = api_client.get("/api/missions/31337")

    assert response.status_code == 404
    data = response.json()
    assert data["detail"] == "Mission 31337 not found"
    uuid.UUID(data["debug_id"])


def test_store_error_is_503_without_driver_details(api_client, monkeypatch):
    """Store failures surface as a generic 503; the driver message stays in the logs."""

    async def unavailable(self, proposal_id):
        raise StoreError("get_proposal", RuntimeError("connection to postgres://admin:secret@db refused"))

    monkeypatch.setattr(ProposalService, "get_proposal", unavailable)

    response = api_client.get("/api/proposals/1")

    assert response.status_code == 503
    data = response.json()
    assert data["detail"] == "Datastore unavailable"
    assert "debug_id" in data
    assert "secret" not in response.text


def test_unsafe_client_id_is_replaced():
    client = TestClient(app)

    response = client.get("/api/health", headers={"X-Request-ID": "x" * 300})

    uuid.UUID(response.headers["x-request-id"])


def test_acceptable_request_ids():
    assert is_acceptable_request_id("custom-id-123")
    assert is_acceptable_request_id(str(uuid.uuid4()))
    assert not is_acceptable_request_id("")
    assert not is_acceptable_request_id("has space")
