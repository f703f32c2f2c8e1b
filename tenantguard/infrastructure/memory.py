"""In-process storage adapters. Same protocols as the SQL adapters; used by tests and local runs."""

import asyncio
import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, NoReturn, Optional, Tuple

from tenantguard.application.exceptions import ResourceNotFoundError, UnknownResourceTypeError
from tenantguard.domain.models.resource import (
    CREATED_AT_FIELD,
    DELETED_AT_FIELD,
    ID_FIELD,
    OWNER_FIELD,
    UPDATED_AT_FIELD,
    ResourceState,
)
from tenantguard.governance.audit_models import AuditEntry
from tenantguard.governance.exceptions import TamperProtectionViolationError

ResourceKey = Tuple[str, str]


@dataclass
class InMemoryDatabase:
    """Committed state shared by every unit of work created from one factory."""

    resource_types: frozenset
    resources: Dict[ResourceKey, ResourceState] = field(default_factory=dict)
    audit_log: List[AuditEntry] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class InMemoryAuditLog:
    """Read side over the committed audit log."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def list_since(self, since: datetime) -> List[AuditEntry]:
        return sorted(
            (e for e in self._db.audit_log if e.created_at >= since),
            key=lambda e: e.created_at,
        )

    async def list_for_resource(self, resource_type: str, resource_id: str) -> List[AuditEntry]:
        return sorted(
            (
                e
                for e in self._db.audit_log
                if e.resource_type == resource_type and e.resource_id == resource_id
            ),
            key=lambda e: e.created_at,
        )


class InMemoryAuditRepository(InMemoryAuditLog):
    """Append-only: appended entries are staged until the unit of work commits."""

    def __init__(self, db: InMemoryDatabase) -> None:
        super().__init__(db)
        self.pending: List[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> None:
        self.pending.append(entry)

    async def get(self, entry_id: str) -> Optional[AuditEntry]:
        for entry in self._db.audit_log + self.pending:
            if entry.entry_id == entry_id:
                return entry
        return None

    async def update(self, entry_id: str, changes: Mapping[str, Any]) -> NoReturn:
        raise TamperProtectionViolationError(
            f"audit entry '{entry_id}' is immutable; update rejected", entry_id=entry_id
        )

    async def delete(self, entry_id: str) -> NoReturn:
        raise TamperProtectionViolationError(
            f"audit entry '{entry_id}' is immutable; delete rejected", entry_id=entry_id
        )


class InMemoryResourceStore:
    """Writes go to a staged copy of the committed resources."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db
        self.staged: Dict[ResourceKey, ResourceState] = copy.deepcopy(db.resources)

    def knows(self, resource_type: str) -> bool:
        return resource_type in self._db.resource_types

    def _check_type(self, resource_type: str) -> None:
        if not self.knows(resource_type):
            raise UnknownResourceTypeError(f"unknown resource type '{resource_type}'")

    def _live(self, resource_type: str, resource_id: str) -> ResourceState:
        state = self.staged.get((resource_type, resource_id))
        if state is None or state.get(DELETED_AT_FIELD) is not None:
            raise ResourceNotFoundError(f"{resource_type} '{resource_id}' not found")
        return state

    async def get(
        self,
        resource_type: str,
        resource_id: str,
        *,
        include_deleted: bool = False,
    ) -> Optional[ResourceState]:
        self._check_type(resource_type)
        state = self.staged.get((resource_type, resource_id))
        if state is None:
            return None
        if state.get(DELETED_AT_FIELD) is not None and not include_deleted:
            return None
        return copy.deepcopy(state)

    async def insert(
        self,
        resource_type: str,
        state: Mapping[str, Any],
        *,
        owner_id: Optional[str],
        now: datetime,
    ) -> ResourceState:
        self._check_type(resource_type)
        resource_id = str(uuid.uuid4())
        stored = {
            **copy.deepcopy(dict(state)),
            ID_FIELD: resource_id,
            OWNER_FIELD: owner_id,
            CREATED_AT_FIELD: now,
            UPDATED_AT_FIELD: now,
            DELETED_AT_FIELD: None,
        }
        self.staged[(resource_type, resource_id)] = stored
        return copy.deepcopy(stored)

    async def update(
        self,
        resource_type: str,
        resource_id: str,
        changes: Mapping[str, Any],
        *,
        now: datetime,
    ) -> ResourceState:
        self._check_type(resource_type)
        state = self._live(resource_type, resource_id)
        state.update(copy.deepcopy(dict(changes)))
        state[UPDATED_AT_FIELD] = now
        return copy.deepcopy(state)

    async def soft_delete(
        self,
        resource_type: str,
        resource_id: str,
        *,
        now: datetime,
    ) -> ResourceState:
        self._check_type(resource_type)
        state = self._live(resource_type, resource_id)
        state[DELETED_AT_FIELD] = now
        state[UPDATED_AT_FIELD] = now
        return copy.deepcopy(state)


class InMemoryUnitOfWork:
    """Staged writes become visible only on commit; anything else discards them."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db
        self.resources = InMemoryResourceStore(db)
        self.audit = InMemoryAuditRepository(db)
        self.committed = False

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self._db.lock.acquire()
        self.resources.staged = copy.deepcopy(self._db.resources)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is not None or not self.committed:
                await self.rollback()
        finally:
            self._db.lock.release()

    async def commit(self) -> None:
        self._db.resources = copy.deepcopy(self.resources.staged)
        self._db.audit_log.extend(self.audit.pending)
        self.audit.pending = []
        self.committed = True

    async def rollback(self) -> None:
        self.resources.staged = copy.deepcopy(self._db.resources)
        self.audit.pending = []


class InMemoryUnitOfWorkFactory:
    def __init__(self, resource_types: Iterable[str]) -> None:
        self.db = InMemoryDatabase(resource_types=frozenset(resource_types))

    def __call__(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self.db)

    @property
    def audit_log(self) -> InMemoryAuditLog:
        return InMemoryAuditLog(self.db)
