"""Audit repository protocol. Governance layer depends on this; infrastructure implements it."""

from datetime import datetime
from typing import Any, List, Mapping, NoReturn, Optional, Protocol

from tenantguard.governance.audit_models import AuditEntry


class AuditLogReader(Protocol):
    """Read side of the audit log. Enough for anomaly detection and compliance views."""

    async def list_since(self, since: datetime) -> List[AuditEntry]:
        """Entries created at or after since, oldest first."""
        ...

    async def list_for_resource(self, resource_type: str, resource_id: str) -> List[AuditEntry]:
        """Entries for one resource, oldest first."""
        ...


class AuditRepository(AuditLogReader, Protocol):
    """Append-only store of audit entries. There is no code path that changes a stored entry."""

    async def append(self, entry: AuditEntry) -> None:
        """Persist a sealed entry within the caller's transaction."""
        ...

    async def get(self, entry_id: str) -> Optional[AuditEntry]:
        ...

    async def update(self, entry_id: str, changes: Mapping[str, Any]) -> NoReturn:
        """Always raises TamperProtectionViolationError; the stored entry is left unchanged."""
        ...

    async def delete(self, entry_id: str) -> NoReturn:
        """Always raises TamperProtectionViolationError; the stored entry is left unchanged."""
        ...
