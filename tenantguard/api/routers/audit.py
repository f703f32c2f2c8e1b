"""Audit trail API router: GET /audit/{resource_type}/{resource_id}. Read-only; entries are never changed."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends

from tenantguard.api.dependencies import get_access_service, get_principal
from tenantguard.application.access_service import AccessControlService
from tenantguard.domain.models.principal import Principal
from tenantguard.domain.schemas.access import AuditEntryResponse, AuditTrailResponse

router = APIRouter()


@router.get("/{resource_type}/{resource_id}", response_model=AuditTrailResponse)
async def get_audit_trail(
    resource_type: str,
    resource_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
):
    """Oldest first. Same access rule as reading the resource itself."""
    entries = await service.get_audit_trail(principal, resource_type, resource_id)
    return AuditTrailResponse(
        resource_type=resource_type,
        resource_id=resource_id,
        entries=[AuditEntryResponse.model_validate(entry.to_dict()) for entry in entries],
    )


@router.patch("/entries/{entry_id}")
async def modify_audit_entry(
    entry_id: str,
    changes: Dict[str, Any],
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
):
    """Always rejected with 409; the attempt itself raises a tamper signal."""
    await service.modify_audit_entry(principal, entry_id, changes)


@router.delete("/entries/{entry_id}")
async def delete_audit_entry(
    entry_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
):
    """Always rejected with 409; the attempt itself raises a tamper signal."""
    await service.delete_audit_entry(principal, entry_id)
