# tenantguard/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from tenantguard.api import dependencies
from tenantguard.api.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from tenantguard.api.routers import access, anomalies, audit, compliance, health, resources
from tenantguard.application.exceptions import (
    ApplicationError,
    ResourceNotFoundError,
    UnknownResourceTypeError,
)
from tenantguard.config.logging import configure_logging
from tenantguard.config.settings import get_settings
from tenantguard.domain.exceptions import DomainError, DomainValidationError
from tenantguard.governance.exceptions import (
    GovernanceError,
    IntegrityCheckFailureError,
    TamperProtectionViolationError,
)
from tenantguard.security.exceptions import (
    AccessDeniedError,
    IdentityResolutionError,
    SecurityError,
    TenantMismatchError,
)

settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run anomaly detection out-of-band for the lifetime of the process."""
    stop_event = asyncio.Event()
    poller = None
    detector = dependencies.get_detector(
        dependencies.get_audit_log(dependencies.get_sessionmaker()),
        dependencies.get_signal_store(dependencies.get_redis_client()),
        dependencies.get_alert_publisher(),
        dependencies.get_metrics(),
    )
    if settings.anomaly_poll_interval_seconds > 0:
        poller = asyncio.create_task(
            detector.run_polling(settings.anomaly_poll_interval_seconds, stop_event)
        )
    yield
    stop_event.set()
    if poller is not None:
        await poller
    await detector.close()
    await dependencies.get_alert_publisher().close()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Middleware order: last added runs first (outermost). Request flow: CorrelationId -> RequestLogging.
app.add_middleware(
    RequestLoggingMiddleware,
    metrics=dependencies.get_metrics() if settings.enable_metrics else None,
)
app.add_middleware(CorrelationIdMiddleware)


def _detail(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})


@app.exception_handler(IdentityResolutionError)
async def identity_error_handler(request, exc: IdentityResolutionError):
    return _detail(401, exc.message)


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request, exc: AccessDeniedError):
    return _detail(403, exc.message)


@app.exception_handler(TenantMismatchError)
async def tenant_mismatch_handler(request, exc: TenantMismatchError):
    return _detail(422, exc.message, reason=exc.reason)


@app.exception_handler(SecurityError)
async def security_error_handler(request, exc: SecurityError):
    return _detail(403, exc.message)


@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request, exc: ResourceNotFoundError):
    return _detail(404, exc.message)


@app.exception_handler(UnknownResourceTypeError)
async def unknown_type_handler(request, exc: UnknownResourceTypeError):
    return _detail(404, exc.message)


@app.exception_handler(TamperProtectionViolationError)
async def tamper_handler(request, exc: TamperProtectionViolationError):
    return _detail(409, exc.message)


@app.exception_handler(IntegrityCheckFailureError)
async def integrity_handler(request, exc: IntegrityCheckFailureError):
    return _detail(500, "Audit integrity check failed", entry_ids=list(exc.entry_ids))


@app.exception_handler(GovernanceError)
async def governance_error_handler(request, exc: GovernanceError):
    return _detail(500, exc.message)


@app.exception_handler(DomainValidationError)
async def domain_validation_error_handler(request, exc: DomainValidationError):
    return _detail(422, exc.message)


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return _detail(400, exc.message)


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return _detail(500, exc.message)


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Routers: /health, /access, /resources, /audit, /anomalies, /compliance
app.include_router(health.router)
app.include_router(access.router, prefix="/access")
app.include_router(resources.router, prefix="/resources")
app.include_router(audit.router, prefix="/audit")
app.include_router(anomalies.router, prefix="/anomalies")
app.include_router(compliance.router, prefix="/compliance")
