"""Pydantic schemas for the access-control API. Strict validation, no DB or infrastructure."""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from tenantguard.domain.models.resource import BOOKKEEPING_FIELDS, Operation


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AccessCheckRequest(BaseModel):
    """Speculative policy check. Nothing is recorded."""

    operation: Operation
    resource_type: str = Field(..., min_length=1)
    resource_tenant: Optional[str] = Field(
        None, description="Tenant owning the resource; for create, the supplied tenant (if any)"
    )
    resource_owner: Optional[str] = None
    is_deleted: bool = False


class ResourceWriteRequest(BaseModel):
    """Proposed state for create or update."""

    state: Dict[str, Any] = Field(default_factory=dict, description="JSON-serializable attributes")
    purpose: Optional[str] = Field(None, max_length=200, description="Why the data is touched")

    @field_validator("state")
    @classmethod
    def state_must_be_json_serializable(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Ensure state is JSON-serializable and leaves bookkeeping fields to storage."""
        try:
            json.dumps(v)
        except (TypeError, ValueError) as e:
            raise ValueError("state must be JSON-serializable") from e
        forbidden = sorted(BOOKKEEPING_FIELDS.intersection(v))
        if forbidden:
            raise ValueError(f"state may not set: {', '.join(forbidden)}")
        return v


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class DecisionResponse(BaseModel):
    allowed: bool
    reason: str
    rule: str


class ResourceResponse(BaseModel):
    resource_type: str
    resource: Dict[str, Any]


class AuditEntryResponse(BaseModel):
    entry_id: str
    resource_type: str
    resource_id: Optional[str]
    operation: str
    outcome: str
    denial_reason: Optional[str] = None
    actor_id: str
    actor_role: str
    actor_tenant_id: Optional[str] = None
    tenant_id: Optional[str] = None
    cross_tenant: bool
    sensitivity: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    changed_fields: List[str]
    created_at: datetime
    correlation_id: Optional[str] = None
    purpose: Optional[str] = None
    checksum: str


class AuditTrailResponse(BaseModel):
    resource_type: str
    resource_id: str
    entries: List[AuditEntryResponse]


class AnomalySignalResponse(BaseModel):
    signal_id: str
    kind: str
    severity: str
    principal_id: str
    tenant_id: Optional[str] = None
    entry_ids: List[str]
    detected_at: datetime
    details: Dict[str, Any] = Field(default_factory=dict)


class BulkAccessRowResponse(BaseModel):
    principal_id: str
    resource_type: str
    tenant_id: Optional[str] = None
    minute: datetime
    access_count: int


class AuditSummaryResponse(BaseModel):
    window_hours: int
    total_events: int
    failed_attempts: int
    unique_actors: int
    operations: Dict[str, int]
