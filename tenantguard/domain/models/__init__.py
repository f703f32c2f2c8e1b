"""Domain models. Pure business entities."""

from tenantguard.domain.models.principal import Principal, Role
from tenantguard.domain.models.resource import Operation, ResourceState, is_soft_deleted
from tenantguard.domain.models.tenant import Tenant

__all__ = [
    "Operation",
    "Principal",
    "ResourceState",
    "Role",
    "Tenant",
    "is_soft_deleted",
]
