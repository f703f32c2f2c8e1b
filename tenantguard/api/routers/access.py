"""Access check API router: POST /access/check. Speculative, records nothing."""

from typing import Annotated

from fastapi import APIRouter, Depends

from tenantguard.api.dependencies import get_access_service, get_principal
from tenantguard.application.access_service import AccessControlService
from tenantguard.domain.models.principal import Principal
from tenantguard.domain.schemas.access import AccessCheckRequest, DecisionResponse

router = APIRouter()


@router.post("/check", response_model=DecisionResponse)
async def check_access(
    body: AccessCheckRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
):
    """Would this principal be allowed? Safe for rendering UI affordances."""
    decision = service.check_access(
        principal,
        body.operation,
        body.resource_type,
        body.resource_tenant,
        resource_owner=body.resource_owner,
        is_deleted=body.is_deleted,
    )
    return DecisionResponse(allowed=decision.allowed, reason=decision.reason, rule=decision.rule)
