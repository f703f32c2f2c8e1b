"""Unit of work protocol: one transaction spanning a resource mutation and its audit entry."""

from typing import Callable, Optional, Protocol, Type

from tenantguard.application.resource_store import ResourceStore
from tenantguard.governance.audit_repository import AuditRepository


class UnitOfWork(Protocol):
    """
    Usage:
        async with uow_factory() as uow:
            ...
            await uow.commit()
    Leaving the block without commit, or through an exception, rolls back.
    """

    resources: ResourceStore
    audit: AuditRepository

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb,
    ) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]
