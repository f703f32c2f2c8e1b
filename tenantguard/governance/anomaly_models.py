"""Derived, ephemeral anomaly signals."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AnomalyKind(str, Enum):
    CROSS_TENANT_ATTEMPT = "cross_tenant_attempt"
    BURST_ACCESS = "burst_access"
    REPEATED_DENIAL = "repeated_denial"
    RAPID_TENANT_SWITCHING = "rapid_tenant_switching"
    TAMPER_ATTEMPT = "tamper_attempt"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AnomalySignal:
    signal_id: str
    kind: AnomalyKind
    severity: Severity
    principal_id: str
    tenant_id: Optional[str]
    entry_ids: Tuple[str, ...]
    detected_at: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal_id": self.signal_id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "principal_id": self.principal_id,
            "tenant_id": self.tenant_id,
            "entry_ids": list(self.entry_ids),
            "detected_at": self.detected_at.isoformat(),
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnomalySignal":
        return cls(
            signal_id=data["signal_id"],
            kind=AnomalyKind(data["kind"]),
            severity=Severity(data["severity"]),
            principal_id=data["principal_id"],
            tenant_id=data.get("tenant_id"),
            entry_ids=tuple(data.get("entry_ids") or ()),
            detected_at=datetime.fromisoformat(data["detected_at"]),
            details=dict(data.get("details") or {}),
        )
