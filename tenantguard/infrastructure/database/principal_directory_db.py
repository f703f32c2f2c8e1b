"""DB-backed principal directory over principal_bindings and tenants."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantguard.domain.models.principal import Principal, Role
from tenantguard.domain.models.tenant import Tenant
from tenantguard.infrastructure.database.audit_repository_db import as_utc
from tenantguard.infrastructure.database.models import PrincipalBindingRow, TenantRow


class DbPrincipalDirectory:
    """Implements PrincipalDirectory. A binding to a soft-deleted or inactive tenant resolves to None."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def lookup(self, principal_id: str) -> Optional[Principal]:
        async with self._sessionmaker() as session:
            binding = await session.get(PrincipalBindingRow, principal_id)
            if binding is None:
                return None
            principal = Principal(
                principal_id=binding.principal_id,
                role=Role(binding.role),
                tenant_id=binding.tenant_id,
            )
            if principal.tenant_id is None:
                return principal
            tenant = await self._tenant(session, principal.tenant_id)
            if tenant is None or tenant.is_deleted or not tenant.active:
                return None
            return principal

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        async with self._sessionmaker() as session:
            return await self._tenant(session, tenant_id)

    async def add_tenant(self, tenant: Tenant) -> None:
        async with self._sessionmaker() as session:
            session.add(
                TenantRow(
                    tenant_id=tenant.tenant_id,
                    name=tenant.name,
                    active=tenant.active,
                    deleted_at=tenant.deleted_at,
                )
            )
            await session.commit()

    async def bind(self, principal: Principal) -> None:
        """Create or replace the binding for principal."""
        async with self._sessionmaker() as session:
            await session.merge(
                PrincipalBindingRow(
                    principal_id=principal.principal_id,
                    role=principal.role.value,
                    tenant_id=principal.tenant_id,
                )
            )
            await session.commit()

    @staticmethod
    async def _tenant(session: AsyncSession, tenant_id: str) -> Optional[Tenant]:
        result = await session.execute(select(TenantRow).where(TenantRow.tenant_id == tenant_id))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return Tenant(
            tenant_id=row.tenant_id,
            name=row.name,
            active=bool(row.active),
            deleted_at=as_utc(row.deleted_at),
        )
