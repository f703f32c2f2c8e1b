# tenantguard/api/routers/health.py

from fastapi import APIRouter, Request

from tenantguard.config.settings import get_settings

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Liveness check with correlation ID from request state. No authentication."""
    settings = get_settings()
    return {
        "status": "ok",
        "correlation_id": request.state.correlation_id,
        "environment": settings.environment,
        "version": settings.version,
    }
