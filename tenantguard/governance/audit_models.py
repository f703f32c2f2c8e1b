"""Immutable audit entry model. Domain-level immutability; storage enforces append-only."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from tenantguard.domain.models.principal import Role
from tenantguard.domain.models.resource import Operation


class AuditOutcome(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


class Sensitivity(str, Enum):
    PUBLIC = "public"
    CONFIDENTIAL = "confidential"
    SENSITIVE = "sensitive"
    PII = "pii"


@dataclass(frozen=True)
class AuditEntry:
    """
    One state-changing (or denied, or read) operation: who, what, which resource,
    which tenant, when (UTC), the field-level change and an integrity checksum.
    References principal, tenant and resource by identifier only, so the entry
    survives soft-deletion of any of them.
    """

    entry_id: str
    resource_type: str
    resource_id: Optional[str]
    operation: Operation
    outcome: AuditOutcome
    actor_id: str
    actor_role: Role
    actor_tenant_id: Optional[str]
    tenant_id: Optional[str]
    sensitivity: Sensitivity
    created_at: datetime
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    changed_fields: Tuple[str, ...] = ()
    denial_reason: Optional[str] = None
    correlation_id: Optional[str] = None
    purpose: Optional[str] = None
    checksum: str = ""

    @property
    def denied(self) -> bool:
        return self.outcome == AuditOutcome.DENIED

    @property
    def cross_tenant(self) -> bool:
        """Actor bound to one tenant touched (or tried to touch) another tenant's resource."""
        return (
            self.actor_tenant_id is not None
            and self.tenant_id is not None
            and self.actor_tenant_id != self.tenant_id
        )

    def checksum_payload(self) -> Dict[str, Any]:
        """Immutable fields covered by the checksum. correlation_id and purpose are context, not content."""
        return {
            "entry_id": self.entry_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "operation": self.operation.value,
            "outcome": self.outcome.value,
            "denial_reason": self.denial_reason,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role.value,
            "actor_tenant_id": self.actor_tenant_id,
            "tenant_id": self.tenant_id,
            "sensitivity": self.sensitivity.value,
            "before": self.before,
            "after": self.after,
            "changed_fields": list(self.changed_fields),
            "created_at": self.created_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging and API responses."""
        return {
            **self.checksum_payload(),
            "cross_tenant": self.cross_tenant,
            "correlation_id": self.correlation_id,
            "purpose": self.purpose,
            "checksum": self.checksum,
        }
