"""DB-backed audit repository. Appends to the audit_entries table; never updates or deletes."""

from datetime import datetime, timezone
from typing import Any, List, Mapping, NoReturn, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantguard.domain.models.principal import Role
from tenantguard.domain.models.resource import Operation
from tenantguard.governance.audit_models import AuditEntry, AuditOutcome, Sensitivity
from tenantguard.governance.exceptions import TamperProtectionViolationError
from tenantguard.infrastructure.database.models import AuditEntryRow


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def entry_to_row(entry: AuditEntry) -> AuditEntryRow:
    return AuditEntryRow(
        entry_id=entry.entry_id,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        operation=entry.operation.value,
        outcome=entry.outcome.value,
        denial_reason=entry.denial_reason,
        actor_id=entry.actor_id,
        actor_role=entry.actor_role.value,
        actor_tenant_id=entry.actor_tenant_id,
        tenant_id=entry.tenant_id,
        is_cross_tenant=entry.cross_tenant,
        sensitivity=entry.sensitivity.value,
        before=entry.before,
        after=entry.after,
        changed_fields=list(entry.changed_fields),
        correlation_id=entry.correlation_id,
        purpose=entry.purpose,
        checksum=entry.checksum,
        created_at=as_utc(entry.created_at),
    )


def row_to_entry(row: AuditEntryRow) -> AuditEntry:
    return AuditEntry(
        entry_id=row.entry_id,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        operation=Operation(row.operation),
        outcome=AuditOutcome(row.outcome),
        actor_id=row.actor_id,
        actor_role=Role(row.actor_role),
        actor_tenant_id=row.actor_tenant_id,
        tenant_id=row.tenant_id,
        sensitivity=Sensitivity(row.sensitivity),
        created_at=as_utc(row.created_at),
        before=row.before,
        after=row.after,
        changed_fields=tuple(row.changed_fields or ()),
        denial_reason=row.denial_reason,
        correlation_id=row.correlation_id,
        purpose=row.purpose,
        checksum=row.checksum,
    )


async def _list_since(session: AsyncSession, since: datetime) -> List[AuditEntry]:
    stmt = (
        select(AuditEntryRow)
        .where(AuditEntryRow.created_at >= as_utc(since))
        .order_by(AuditEntryRow.created_at, AuditEntryRow.sequence)
    )
    result = await session.execute(stmt)
    return [row_to_entry(row) for row in result.scalars()]


async def _list_for_resource(
    session: AsyncSession, resource_type: str, resource_id: str
) -> List[AuditEntry]:
    stmt = (
        select(AuditEntryRow)
        .where(
            AuditEntryRow.resource_type == resource_type,
            AuditEntryRow.resource_id == resource_id,
        )
        .order_by(AuditEntryRow.created_at, AuditEntryRow.sequence)
    )
    result = await session.execute(stmt)
    return [row_to_entry(row) for row in result.scalars()]


class DbAuditRepository:
    """Implements AuditRepository within the caller's session; the unit of work commits."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: AuditEntry) -> None:
        self._session.add(entry_to_row(entry))
        await self._session.flush()

    async def get(self, entry_id: str) -> Optional[AuditEntry]:
        stmt = select(AuditEntryRow).where(AuditEntryRow.entry_id == entry_id)
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return row_to_entry(row) if row is not None else None

    async def list_since(self, since: datetime) -> List[AuditEntry]:
        return await _list_since(self._session, since)

    async def list_for_resource(self, resource_type: str, resource_id: str) -> List[AuditEntry]:
        return await _list_for_resource(self._session, resource_type, resource_id)

    async def update(self, entry_id: str, changes: Mapping[str, Any]) -> NoReturn:
        raise TamperProtectionViolationError(
            f"audit entry '{entry_id}' is immutable; update rejected", entry_id=entry_id
        )

    async def delete(self, entry_id: str) -> NoReturn:
        raise TamperProtectionViolationError(
            f"audit entry '{entry_id}' is immutable; delete rejected", entry_id=entry_id
        )


class DbAuditLogReader:
    """Read side for detection and compliance views. One short-lived session per query."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def list_since(self, since: datetime) -> List[AuditEntry]:
        async with self._sessionmaker() as session:
            return await _list_since(session, since)

    async def list_for_resource(self, resource_type: str, resource_id: str) -> List[AuditEntry]:
        async with self._sessionmaker() as session:
            return await _list_for_resource(session, resource_type, resource_id)
