"""Resource API router: create, read, update, soft-delete. Every call goes through AccessControlService."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, status

from tenantguard.api.dependencies import get_access_service, get_correlation_id, get_principal
from tenantguard.application.access_service import AccessControlService
from tenantguard.domain.models.principal import Principal
from tenantguard.domain.models.resource import Operation
from tenantguard.domain.schemas.access import ResourceResponse, ResourceWriteRequest

router = APIRouter()

PURPOSE_HEADER = "X-Access-Purpose"


@router.post("/{resource_type}", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
async def create_resource(
    resource_type: str,
    body: ResourceWriteRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
):
    """Create a resource. The tenant field is filled from the caller when omitted."""
    stored = await service.apply_mutation(
        principal,
        Operation.CREATE,
        resource_type,
        None,
        body.state,
        correlation_id=correlation_id,
        purpose=body.purpose,
    )
    return ResourceResponse(resource_type=resource_type, resource=stored)


@router.get("/{resource_type}/{resource_id}", response_model=ResourceResponse)
async def read_resource(
    resource_type: str,
    resource_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    x_access_purpose: Annotated[Optional[str], Header(alias=PURPOSE_HEADER)] = None,
):
    stored = await service.read_resource(
        principal,
        resource_type,
        resource_id,
        correlation_id=correlation_id,
        purpose=x_access_purpose,
    )
    return ResourceResponse(resource_type=resource_type, resource=stored)


@router.patch("/{resource_type}/{resource_id}", response_model=ResourceResponse)
async def update_resource(
    resource_type: str,
    resource_id: str,
    body: ResourceWriteRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
):
    """Partial update. Changing the tenant field is reserved for administrators."""
    stored = await service.apply_mutation(
        principal,
        Operation.UPDATE,
        resource_type,
        resource_id,
        body.state,
        correlation_id=correlation_id,
        purpose=body.purpose,
    )
    return ResourceResponse(resource_type=resource_type, resource=stored)


@router.delete("/{resource_type}/{resource_id}", response_model=ResourceResponse)
async def delete_resource(
    resource_type: str,
    resource_id: str,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    x_access_purpose: Annotated[Optional[str], Header(alias=PURPOSE_HEADER)] = None,
):
    """Soft delete. Returns the final state, including deleted_at."""
    stored = await service.apply_mutation(
        principal,
        Operation.DELETE,
        resource_type,
        resource_id,
        None,
        correlation_id=correlation_id,
        purpose=x_access_purpose,
    )
    return ResourceResponse(resource_type=resource_type, resource=stored)
