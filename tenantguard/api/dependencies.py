"""FastAPI dependency injection: storage, detector, identity, AccessControlService, principal, correlation_id."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantguard.application.access_service import AccessControlService
from tenantguard.application.unit_of_work import UnitOfWorkFactory
from tenantguard.config.settings import AppSettings, get_settings
from tenantguard.core.context import principal_id_ctx, tenant_id_ctx
from tenantguard.domain.models.principal import Principal
from tenantguard.governance.anomaly_detector import AnomalyDetector, DetectionThresholds
from tenantguard.governance.anomaly_store import AnomalySignalStore
from tenantguard.governance.audit_repository import AuditLogReader
from tenantguard.governance.classification import SensitivityClassifier
from tenantguard.governance.compliance_views import ComplianceViews
from tenantguard.infrastructure.cache.anomaly_store_redis import RedisAnomalySignalStore
from tenantguard.infrastructure.cache.redis_client import RedisClient
from tenantguard.infrastructure.database.audit_repository_db import DbAuditLogReader
from tenantguard.infrastructure.database.principal_directory_db import DbPrincipalDirectory
from tenantguard.infrastructure.database.session import build_engine, build_sessionmaker
from tenantguard.infrastructure.database.unit_of_work import DbUnitOfWorkFactory
from tenantguard.infrastructure.messaging.rabbitmq_publisher import RabbitMQAlertPublisher
from tenantguard.observability.metrics import MetricsCollector
from tenantguard.security.exceptions import AccessDeniedError, IdentityResolutionError
from tenantguard.security.identity import IdentityResolver, JwtIdentityResolver
from tenantguard.security.policy import DenialReason, PolicyEvaluator, parse_rule
from tenantguard.security.tenant_guard import TenantBindingGuard

BEARER_PREFIX = "bearer "

_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_redis_client: RedisClient | None = None
_publisher: RabbitMQAlertPublisher | None = None
_metrics: MetricsCollector | None = None
_detector: AnomalyDetector | None = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return singleton sessionmaker bound to the configured database."""
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = build_sessionmaker(build_engine(get_settings().database_url))
    return _sessionmaker


def get_redis_client() -> RedisClient:
    """Return singleton Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient(get_settings().redis_url)
    return _redis_client


def get_alert_publisher() -> RabbitMQAlertPublisher:
    """Return singleton RabbitMQ alert publisher."""
    global _publisher
    if _publisher is None:
        settings = get_settings()
        _publisher = RabbitMQAlertPublisher(settings.rabbitmq_url, settings.alert_exchange)
    return _publisher


def get_metrics() -> MetricsCollector:
    """Return singleton metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_uow_factory(
    sessionmaker: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessionmaker)],
) -> UnitOfWorkFactory:
    return DbUnitOfWorkFactory(sessionmaker, tenant_field=get_settings().tenant_field)


def get_audit_log(
    sessionmaker: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessionmaker)],
) -> AuditLogReader:
    return DbAuditLogReader(sessionmaker)


def get_signal_store(
    redis: Annotated[RedisClient, Depends(get_redis_client)],
) -> AnomalySignalStore:
    return RedisAnomalySignalStore(redis, ttl_seconds=get_settings().anomaly_signal_ttl_seconds)


def get_detector(
    audit_log: Annotated[AuditLogReader, Depends(get_audit_log)],
    store: Annotated[AnomalySignalStore, Depends(get_signal_store)],
    publisher: Annotated[RabbitMQAlertPublisher, Depends(get_alert_publisher)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
) -> AnomalyDetector:
    """Return singleton detector; it remembers which entries already produced signals."""
    global _detector
    if _detector is None:
        settings = get_settings()
        _detector = AnomalyDetector(
            audit_log,
            store,
            notifier=publisher,
            thresholds=DetectionThresholds.from_settings(settings),
            metrics=metrics if settings.enable_metrics else None,
            notify_timeout_seconds=settings.alert_notify_timeout_seconds,
        )
    return _detector


def get_identity_resolver(
    sessionmaker: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessionmaker)],
) -> IdentityResolver:
    settings = get_settings()
    directory = DbPrincipalDirectory(sessionmaker) if settings.use_principal_directory else None
    return JwtIdentityResolver(settings.jwt_secret, settings.jwt_algorithm, directory=directory)


def build_policy_evaluator(settings: AppSettings) -> PolicyEvaluator:
    return PolicyEvaluator(
        rules=[parse_rule(rule) for rule in settings.policy_rules],
        globally_readable=settings.globally_readable_types,
    )


async def get_access_service(
    uow_factory: Annotated[UnitOfWorkFactory, Depends(get_uow_factory)],
    detector: Annotated[AnomalyDetector, Depends(get_detector)],
    metrics: Annotated[MetricsCollector, Depends(get_metrics)],
) -> AccessControlService:
    """Build AccessControlService with injected storage, policy, guard, detector, metrics, logger."""
    settings = get_settings()
    return AccessControlService(
        uow_factory=uow_factory,
        evaluator=build_policy_evaluator(settings),
        guard=TenantBindingGuard(settings.tenant_field),
        classifier=SensitivityClassifier(settings.audit_sensitivity_overrides),
        volatile_fields=settings.audit_volatile_fields,
        detector=detector,
        metrics=metrics if settings.enable_metrics else None,
        logger=logging.getLogger("tenantguard.application.access_service"),
    )


def get_compliance_views(
    audit_log: Annotated[AuditLogReader, Depends(get_audit_log)],
) -> ComplianceViews:
    return ComplianceViews(audit_log)


async def get_principal(
    request: Request,
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
) -> Principal:
    """Resolve the bearer token; bind principal and tenant to the logging context."""
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        raise IdentityResolutionError("Missing bearer token")
    principal = await resolver.resolve_principal(header[len(BEARER_PREFIX):].strip())
    request.state.principal = principal
    principal_id_ctx.set(principal.principal_id)
    tenant_id_ctx.set(principal.tenant_id)
    return principal


def get_correlation_id(request: Request) -> str:
    """Extract correlation_id from request.state (set by middleware)."""
    return getattr(request.state, "correlation_id", "") or ""


async def get_admin_principal(
    principal: Annotated[Principal, Depends(get_principal)],
) -> Principal:
    """Compliance views are reserved for administrators."""
    if not principal.is_admin:
        raise AccessDeniedError(DenialReason.ADMIN_REQUIRED.value)
    return principal
