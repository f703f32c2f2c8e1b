"""Domain schemas. Request/response and validation."""

from tenantguard.domain.schemas.access import (
    AccessCheckRequest,
    AnomalySignalResponse,
    AuditEntryResponse,
    AuditTrailResponse,
    BulkAccessRowResponse,
    DecisionResponse,
    ResourceResponse,
    ResourceWriteRequest,
)

__all__ = [
    "AccessCheckRequest",
    "AnomalySignalResponse",
    "AuditEntryResponse",
    "AuditTrailResponse",
    "BulkAccessRowResponse",
    "DecisionResponse",
    "ResourceResponse",
    "ResourceWriteRequest",
]
