"""Compliance API router: read-only audit views for administrators."""

from datetime import datetime, timedelta
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query

from tenantguard.api.dependencies import get_admin_principal, get_compliance_views
from tenantguard.config.settings import get_settings
from tenantguard.domain.models.principal import Principal
from tenantguard.domain.schemas.access import (
    AuditEntryResponse,
    AuditSummaryResponse,
    BulkAccessRowResponse,
)
from tenantguard.governance.compliance_views import ComplianceViews

router = APIRouter()

AdminPrincipal = Annotated[Principal, Depends(get_admin_principal)]
Views = Annotated[ComplianceViews, Depends(get_compliance_views)]
Since = Annotated[Optional[datetime], Query()]


def _entries(entries) -> List[AuditEntryResponse]:
    return [AuditEntryResponse.model_validate(e.to_dict()) for e in entries]


@router.get("/pii-access", response_model=List[AuditEntryResponse])
async def pii_access(principal: AdminPrincipal, views: Views):
    window = timedelta(days=get_settings().pii_access_window_days)
    return _entries(await views.pii_access(window))


@router.get("/admin-activity", response_model=List[AuditEntryResponse])
async def admin_activity(principal: AdminPrincipal, views: Views, since: Since = None):
    return _entries(await views.admin_activity(since))


@router.get("/cross-tenant-attempts", response_model=List[AuditEntryResponse])
async def cross_tenant_attempts(principal: AdminPrincipal, views: Views, since: Since = None):
    return _entries(await views.cross_tenant_attempts(since))


@router.get("/failed-access-attempts", response_model=List[AuditEntryResponse])
async def failed_access_attempts(principal: AdminPrincipal, views: Views, since: Since = None):
    return _entries(await views.failed_access_attempts(since))


@router.get("/summary", response_model=AuditSummaryResponse)
async def audit_summary(
    principal: AdminPrincipal,
    views: Views,
    hours: Annotated[int, Query(gt=0, le=24 * 365)] = 24,
):
    summary = await views.audit_summary(hours)
    return AuditSummaryResponse.model_validate(summary.to_dict())


@router.get("/bulk-access", response_model=List[BulkAccessRowResponse])
async def bulk_access(principal: AdminPrincipal, views: Views):
    settings = get_settings()
    rows = await views.bulk_access(
        timedelta(hours=settings.bulk_access_window_hours),
        settings.bulk_access_per_minute_threshold,
    )
    return [BulkAccessRowResponse.model_validate(r.to_dict()) for r in rows]


@router.get("/integrity", response_model=List[AuditEntryResponse])
async def integrity_report(principal: AdminPrincipal, views: Views, since: Since = None):
    """Entries whose checksum no longer verifies. Empty means the log is intact."""
    return _entries(await views.integrity_report(since))
