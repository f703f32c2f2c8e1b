"""Resource store protocol. Application layer depends on this; infrastructure implements it."""

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from tenantguard.domain.models.resource import ResourceState


class ResourceStore(Protocol):
    """
    Tenant-owned resources addressed by (resource_type, resource_id).
    States are plain dicts: user attributes plus id, the tenant field, owner_id,
    created_at, updated_at and deleted_at. Raises UnknownResourceTypeError for
    unregistered types.
    """

    def knows(self, resource_type: str) -> bool:
        ...

    async def get(
        self,
        resource_type: str,
        resource_id: str,
        *,
        include_deleted: bool = False,
    ) -> Optional[ResourceState]:
        """Return the stored state, or None. Soft-deleted rows only with include_deleted."""
        ...

    async def insert(
        self,
        resource_type: str,
        state: Mapping[str, Any],
        *,
        owner_id: Optional[str],
        now: datetime,
    ) -> ResourceState:
        """Insert a new resource. Assigns id and bookkeeping fields; returns the stored state."""
        ...

    async def update(
        self,
        resource_type: str,
        resource_id: str,
        changes: Mapping[str, Any],
        *,
        now: datetime,
    ) -> ResourceState:
        """Apply changes to a live resource and return the new stored state."""
        ...

    async def soft_delete(
        self,
        resource_type: str,
        resource_id: str,
        *,
        now: datetime,
    ) -> ResourceState:
        """Set deleted_at and return the final state. Rows are never physically removed."""
        ...
