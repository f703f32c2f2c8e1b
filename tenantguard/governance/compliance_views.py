"""Read-only compliance queries over the audit log. No writes, no FastAPI."""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from tenantguard.domain.models.principal import Role
from tenantguard.domain.models.resource import Operation
from tenantguard.governance.audit_models import AuditEntry, Sensitivity
from tenantguard.governance.audit_recorder import Clock, utc_now
from tenantguard.governance.audit_repository import AuditLogReader
from tenantguard.governance.integrity import verify_entry

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

BULK_OPERATIONS = frozenset({Operation.READ, Operation.CREATE, Operation.UPDATE})


@dataclass(frozen=True)
class BulkAccessRow:
    """One principal's accesses to one resource type of one tenant within one minute."""

    principal_id: str
    resource_type: str
    tenant_id: Optional[str]
    minute: datetime
    access_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal_id": self.principal_id,
            "resource_type": self.resource_type,
            "tenant_id": self.tenant_id,
            "minute": self.minute.isoformat(),
            "access_count": self.access_count,
        }


@dataclass(frozen=True)
class AuditSummary:
    """Activity totals over a trailing window."""

    window_hours: int
    total_events: int
    failed_attempts: int
    unique_actors: int
    operations: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_hours": self.window_hours,
            "total_events": self.total_events,
            "failed_attempts": self.failed_attempts,
            "unique_actors": self.unique_actors,
            "operations": dict(self.operations),
        }


class ComplianceViews:
    """Each view returns entries newest first unless stated otherwise."""

    def __init__(self, audit_log: AuditLogReader, clock: Clock = utc_now) -> None:
        self._audit_log = audit_log
        self._clock = clock

    async def _since(self, since: Optional[datetime]) -> List[AuditEntry]:
        entries = await self._audit_log.list_since(since or _EPOCH)
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    async def pii_access(self, window: timedelta = timedelta(days=30)) -> List[AuditEntry]:
        """Allowed and denied operations on PII-classified resource types."""
        entries = await self._since(self._clock() - window)
        return [e for e in entries if e.sensitivity == Sensitivity.PII]

    async def admin_activity(self, since: Optional[datetime] = None) -> List[AuditEntry]:
        entries = await self._since(since)
        return [e for e in entries if e.actor_role == Role.ADMINISTRATOR]

    async def cross_tenant_attempts(self, since: Optional[datetime] = None) -> List[AuditEntry]:
        """Operations whose actor tenant differs from the resource tenant, denied or not."""
        entries = await self._since(since)
        return [e for e in entries if e.cross_tenant]

    async def failed_access_attempts(self, since: Optional[datetime] = None) -> List[AuditEntry]:
        """Denied operations of any kind."""
        entries = await self._since(since)
        return [e for e in entries if e.denied]

    async def audit_summary(self, hours: int = 24) -> AuditSummary:
        entries = await self._since(self._clock() - timedelta(hours=hours))
        operations = Counter(e.operation.value for e in entries)
        return AuditSummary(
            window_hours=hours,
            total_events=len(entries),
            failed_attempts=sum(1 for e in entries if e.denied),
            unique_actors=len({e.actor_id for e in entries}),
            operations={op.value: operations.get(op.value, 0) for op in Operation},
        )

    async def bulk_access(
        self,
        window: timedelta = timedelta(hours=24),
        per_minute_threshold: int = 10,
    ) -> List[BulkAccessRow]:
        """
        Minute buckets where one principal read, created or updated more than
        per_minute_threshold resources of one type and tenant.
        Sorted by minute (newest first), then by count.
        """
        entries = await self._since(self._clock() - window)
        buckets: Counter[Tuple[str, str, Optional[str], datetime]] = Counter()
        for e in entries:
            if e.operation not in BULK_OPERATIONS:
                continue
            minute = e.created_at.replace(second=0, microsecond=0)
            buckets[(e.actor_id, e.resource_type, e.tenant_id, minute)] += 1

        rows = [
            BulkAccessRow(
                principal_id=principal_id,
                resource_type=resource_type,
                tenant_id=tenant_id,
                minute=minute,
                access_count=count,
            )
            for (principal_id, resource_type, tenant_id, minute), count in buckets.items()
            if count > per_minute_threshold
        ]
        rows.sort(key=lambda r: (r.minute, r.access_count), reverse=True)
        return rows

    async def integrity_report(self, since: Optional[datetime] = None) -> List[AuditEntry]:
        """Entries whose stored checksum no longer matches their content."""
        entries = await self._since(since)
        return [e for e in entries if not verify_entry(e)]
