"""DB-backed resource store. One table per resource type, soft-delete only."""

import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.application.exceptions import ResourceNotFoundError, UnknownResourceTypeError
from tenantguard.domain.models.resource import (
    CREATED_AT_FIELD,
    DELETED_AT_FIELD,
    ID_FIELD,
    OWNER_FIELD,
    UPDATED_AT_FIELD,
    ResourceState,
)
from tenantguard.infrastructure.database.audit_repository_db import as_utc
from tenantguard.infrastructure.database.models import RESOURCE_MODELS, ResourceRow


class DbResourceStore:
    """Implements ResourceStore within the caller's session. The tenant field maps to the tenant_id column."""

    def __init__(
        self,
        session: AsyncSession,
        models: Optional[Mapping[str, Type[ResourceRow]]] = None,
        tenant_field: str = "tenant_id",
    ) -> None:
        self._session = session
        self._models: Dict[str, Type[ResourceRow]] = dict(models or RESOURCE_MODELS)
        self._tenant_field = tenant_field

    def knows(self, resource_type: str) -> bool:
        return resource_type in self._models

    def _model(self, resource_type: str) -> Type[ResourceRow]:
        model = self._models.get(resource_type)
        if model is None:
            raise UnknownResourceTypeError(f"unknown resource type '{resource_type}'")
        return model

    def _to_state(self, row: ResourceRow) -> ResourceState:
        return {
            **dict(row.attributes or {}),
            ID_FIELD: row.id,
            self._tenant_field: row.tenant_id,
            OWNER_FIELD: row.owner_id,
            CREATED_AT_FIELD: as_utc(row.created_at),
            UPDATED_AT_FIELD: as_utc(row.updated_at),
            DELETED_AT_FIELD: as_utc(row.deleted_at),
        }

    async def _load(self, resource_type: str, resource_id: str) -> Optional[ResourceRow]:
        model = self._model(resource_type)
        result = await self._session.execute(select(model).where(model.id == resource_id))
        return result.scalar_one_or_none()

    async def _load_live(self, resource_type: str, resource_id: str) -> ResourceRow:
        row = await self._load(resource_type, resource_id)
        if row is None or row.deleted_at is not None:
            raise ResourceNotFoundError(f"{resource_type} '{resource_id}' not found")
        return row

    async def get(
        self,
        resource_type: str,
        resource_id: str,
        *,
        include_deleted: bool = False,
    ) -> Optional[ResourceState]:
        row = await self._load(resource_type, resource_id)
        if row is None or (row.deleted_at is not None and not include_deleted):
            return None
        return self._to_state(row)

    async def insert(
        self,
        resource_type: str,
        state: Mapping[str, Any],
        *,
        owner_id: Optional[str],
        now: datetime,
    ) -> ResourceState:
        model = self._model(resource_type)
        attributes = dict(state)
        tenant_id = attributes.pop(self._tenant_field, None)
        row = model(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            owner_id=owner_id,
            attributes=attributes,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        self._session.add(row)
        await self._session.flush()
        return self._to_state(row)

    async def update(
        self,
        resource_type: str,
        resource_id: str,
        changes: Mapping[str, Any],
        *,
        now: datetime,
    ) -> ResourceState:
        row = await self._load_live(resource_type, resource_id)
        attributes = dict(row.attributes or {})
        for key, value in changes.items():
            if key == self._tenant_field:
                row.tenant_id = value
            else:
                attributes[key] = value
        # New dict so the JSON column is flagged as changed.
        row.attributes = attributes
        row.updated_at = now
        await self._session.flush()
        return self._to_state(row)

    async def soft_delete(
        self,
        resource_type: str,
        resource_id: str,
        *,
        now: datetime,
    ) -> ResourceState:
        row = await self._load_live(resource_type, resource_id)
        row.deleted_at = now
        row.updated_at = now
        await self._session.flush()
        return self._to_state(row)
