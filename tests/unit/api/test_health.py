"""Tests for GET /health and the correlation ID middleware."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_needs_no_token(async_client: AsyncClient):
    """GET /health returns 200 without authentication."""
    r = await async_client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["environment"] == "test"
    assert len(data["correlation_id"]) > 0


@pytest.mark.asyncio
async def test_correlation_id_generated(async_client: AsyncClient):
    """When X-Correlation-ID is not sent, response has a generated correlation ID."""
    r = await async_client.get("/health")
    assert r.headers["X-Correlation-ID"] == r.json()["correlation_id"]


@pytest.mark.asyncio
async def test_correlation_id_preserved_when_passed(async_client: AsyncClient):
    """When X-Correlation-ID is sent, the same value is returned in response."""
    r = await async_client.get("/health", headers={"X-Correlation-ID": "my-correlation-123"})
    assert r.headers.get("X-Correlation-ID") == "my-correlation-123"
    assert r.json()["correlation_id"] == "my-correlation-123"


@pytest.mark.asyncio
async def test_missing_bearer_token_is_401(async_client: AsyncClient):
    r = await async_client.get("/resources/stakeholder_contacts/c-1")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_token_is_401(async_client: AsyncClient):
    r = await async_client.get(
        "/resources/stakeholder_contacts/c-1", headers={"Authorization": "Bearer nope"}
    )
    assert r.status_code == 401
