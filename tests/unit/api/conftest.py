"""Fixtures for API unit tests: in-memory storage, static bearer tokens, AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from tenantguard.governance.anomaly_detector import AnomalyDetector, DetectionThresholds
from tenantguard.governance.anomaly_store import InMemoryAnomalySignalStore
from tenantguard.infrastructure.memory import InMemoryUnitOfWorkFactory
from tenantguard.main import app
from tenantguard.observability.metrics import MetricsCollector
from tenantguard.security.identity import StaticIdentityResolver

TOKENS = {"alice": "alice-token", "bob": "bob-token", "admin": "admin-token"}


@pytest.fixture
def api_uow_factory():
    return InMemoryUnitOfWorkFactory(
        ["stakeholder_contacts", "stakeholder_notes", "organizations", "client_org_history"]
    )


@pytest.fixture
def api_detector(api_uow_factory):
    """Real clock: entries written through the API carry wall-clock timestamps."""
    return AnomalyDetector(
        api_uow_factory.audit_log,
        InMemoryAnomalySignalStore(),
        thresholds=DetectionThresholds(burst_reads=5, repeated_denials=3, tenant_switches=2),
    )


@pytest.fixture
def resolver(alice, bob, admin):
    return StaticIdentityResolver(
        {TOKENS["alice"]: alice, TOKENS["bob"]: bob, TOKENS["admin"]: admin}
    )


@pytest.fixture
def app_with_overrides(api_uow_factory, api_detector, resolver):
    """App with storage, detector and identity overridden for testing."""
    from tenantguard.api import dependencies

    metrics = MetricsCollector()
    app.dependency_overrides[dependencies.get_uow_factory] = lambda: api_uow_factory
    app.dependency_overrides[dependencies.get_audit_log] = lambda: api_uow_factory.audit_log
    app.dependency_overrides[dependencies.get_detector] = lambda: api_detector
    app.dependency_overrides[dependencies.get_identity_resolver] = lambda: resolver
    app.dependency_overrides[dependencies.get_metrics] = lambda: metrics
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_overrides):
    """Async HTTP client for testing; uses overridden app."""
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth(who: str) -> dict:
    return {"Authorization": f"Bearer {TOKENS[who]}"}


@pytest.fixture
def alice_headers():
    return auth("alice")


@pytest.fixture
def bob_headers():
    return auth("bob")


@pytest.fixture
def admin_headers():
    return auth("admin")
