"""SQLAlchemy unit of work: one session and one transaction per mutation."""

from typing import Mapping, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantguard.infrastructure.database.audit_repository_db import DbAuditRepository
from tenantguard.infrastructure.database.models import ResourceRow
from tenantguard.infrastructure.database.resource_store_db import DbResourceStore


class DbUnitOfWork:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        models: Optional[Mapping[str, Type[ResourceRow]]] = None,
        tenant_field: str = "tenant_id",
    ) -> None:
        self._sessionmaker = sessionmaker
        self._models = models
        self._tenant_field = tenant_field
        self._session: Optional[AsyncSession] = None
        self._committed = False

    async def __aenter__(self) -> "DbUnitOfWork":
        self._session = self._sessionmaker()
        self._committed = False
        self.resources = DbResourceStore(self._session, self._models, self._tenant_field)
        self.audit = DbAuditRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None or not self._committed:
                await self.rollback()
        finally:
            await self._session.close()

    async def commit(self) -> None:
        await self._session.commit()
        self._committed = True

    async def rollback(self) -> None:
        await self._session.rollback()


class DbUnitOfWorkFactory:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        models: Optional[Mapping[str, Type[ResourceRow]]] = None,
        tenant_field: str = "tenant_id",
    ) -> None:
        self._sessionmaker = sessionmaker
        self._models = models
        self._tenant_field = tenant_field

    def __call__(self) -> DbUnitOfWork:
        return DbUnitOfWork(self._sessionmaker, self._models, self._tenant_field)
