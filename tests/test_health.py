"""
Workshop - Health & Error Response Tests
Tests for liveness, readiness, and the shared error body.
"""

import re

import pytest
from httpx import AsyncClient


# =============================================================================
# Health Check Tests
# =============================================================================

@pytest.mark.anyio
async def test_healthz(client: AsyncClient):
    """Test basic health check endpoint."""
    response = await client.get("/healthz")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", data["timestamp"])


@pytest.mark.anyio
async def test_healthz_needs_no_session(client: AsyncClient):
    response = await client.get("/healthz", headers={"Cookie": "workshop_session=bogus"})
    assert response.status_code == 200


# =============================================================================
# Readiness Check Tests
# =============================================================================

@pytest.mark.anyio
async def test_readyz(client: AsyncClient, login_as):
    """Ready while the lifespan keeps the limiter sweep running."""
    login_as("member")

    response = await client.get("/readyz")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["sessions"]["active"] == 1
    assert data["checks"]["rate_limiter"]["ok"] is True
    assert data["checks"]["rate_limiter"]["visitors"] >= 1


@pytest.mark.anyio
async def test_readyz_degraded_without_sweeper(app, client: AsyncClient):
    app.state.rate_limiter.close()

    response = await client.get("/readyz")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


# =============================================================================
# Error Response Tests
# =============================================================================

@pytest.mark.anyio
async def test_404_error(client: AsyncClient):
    """Test 404 response for non-existent endpoint."""
    response = await client.get("/nonexistent-endpoint-xyz")
    assert response.status_code == 404
    data = response.json()
    assert data["error"] == "not_found"
    assert data["request_id"] == response.headers["x-request-id"]


@pytest.mark.anyio
async def test_method_not_allowed(client: AsyncClient):
    """POST to a GET-only endpoint."""
    response = await client.post("/healthz", json={})
    assert response.status_code == 405
    assert response.json()["error"] == "method_not_allowed"
