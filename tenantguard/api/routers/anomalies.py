"""Anomaly API router: GET /anomalies. Administrators see every tenant; others only their own."""

from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query

from tenantguard.api.dependencies import get_access_service, get_principal
from tenantguard.application.access_service import AccessControlService
from tenantguard.domain.models.principal import Principal
from tenantguard.domain.schemas.access import AnomalySignalResponse

router = APIRouter()


@router.get("", response_model=List[AnomalySignalResponse])
async def list_anomalies(
    principal: Annotated[Principal, Depends(get_principal)],
    service: Annotated[AccessControlService, Depends(get_access_service)],
    since: Annotated[Optional[datetime], Query()] = None,
):
    signals = await service.list_anomalies(principal, since)
    return [AnomalySignalResponse.model_validate(s.to_dict()) for s in signals]
