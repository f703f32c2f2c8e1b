"""Tests for API middleware on a bare app: correlation ID propagation, request latency metric."""

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from tenantguard.api.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from tenantguard.core.context import correlation_id_ctx
from tenantguard.observability.metrics import MetricsCollector


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
async def client(metrics):
    bare = FastAPI()

    @bare.get("/ping")
    async def ping(request: Request):
        return {"state": request.state.correlation_id, "ctx": correlation_id_ctx.get()}

    bare.add_middleware(RequestLoggingMiddleware, metrics=metrics)
    bare.add_middleware(CorrelationIdMiddleware)
    transport = ASGITransport(app=bare)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_correlation_id_reaches_handler_and_context(client: AsyncClient):
    r = await client.get("/ping", headers={"X-Correlation-ID": "corr-42"})
    assert r.json() == {"state": "corr-42", "ctx": "corr-42"}
    assert r.headers["X-Correlation-ID"] == "corr-42"


@pytest.mark.asyncio
async def test_latency_observed_per_route(client: AsyncClient, metrics):
    await client.get("/ping")
    await client.get("/ping")
    histogram = metrics.export_metrics()["histograms"]["http_request_latency:route=/ping"]
    assert histogram["count"] == 2
    assert histogram["sum"] >= 0
