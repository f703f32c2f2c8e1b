"""Tenant-ownership field guard for mutations. No FastAPI."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from tenantguard.domain.models.principal import Principal
from tenantguard.security.exceptions import TenantMismatchError

CREATE_MISMATCH = "tenant mismatch on create"
REASSIGNMENT_FORBIDDEN = "tenant reassignment forbidden"
TENANT_REQUIRED = "tenant required"


@dataclass(frozen=True)
class TenantReassignment:
    """An administrator moved a resource between tenants. Both values end up in the audit entry."""

    old_tenant_id: Optional[str]
    new_tenant_id: Optional[str]


class TenantBindingGuard:
    """
    Create: auto-populate the tenant field from the principal, or require it to match.
    Update: the tenant field is immutable for regular principals.
    Delete carries no tenant-field concern.
    """

    def __init__(self, tenant_field: str = "tenant_id") -> None:
        self._field = tenant_field

    @property
    def tenant_field(self) -> str:
        return self._field

    def bind_on_create(self, principal: Principal, proposed: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of proposed with the tenant field populated."""
        bound = dict(proposed)
        supplied = bound.get(self._field)
        if supplied is None:
            if principal.tenant_id is None:
                raise TenantMismatchError(
                    f"{CREATE_MISMATCH}: '{self._field}' is required for principals without a tenant",
                    reason=CREATE_MISMATCH,
                )
            bound[self._field] = principal.tenant_id
            return bound
        if principal.is_admin:
            return bound
        if supplied != principal.tenant_id:
            raise TenantMismatchError(
                f"{CREATE_MISMATCH}: '{supplied}' does not match principal tenant "
                f"'{principal.tenant_id}'",
                reason=CREATE_MISMATCH,
            )
        return bound

    def check_update(
        self,
        principal: Principal,
        stored_tenant: Optional[str],
        proposed: Mapping[str, Any],
    ) -> Optional[TenantReassignment]:
        """
        Returns a TenantReassignment when an administrator changes the tenant field,
        None when the field is untouched. Raises TenantMismatchError for regular principals
        and for anyone clearing the field.
        """
        if self._field not in proposed:
            return None
        new_tenant = proposed[self._field]
        if new_tenant == stored_tenant:
            return None
        if new_tenant is None:
            raise TenantMismatchError(
                f"{TENANT_REQUIRED}: '{self._field}' cannot be cleared on '{stored_tenant}'",
                reason=TENANT_REQUIRED,
            )
        if not principal.is_admin:
            raise TenantMismatchError(
                f"{REASSIGNMENT_FORBIDDEN}: cannot move resource from '{stored_tenant}' "
                f"to '{new_tenant}'",
                reason=REASSIGNMENT_FORBIDDEN,
            )
        return TenantReassignment(old_tenant_id=stored_tenant, new_tenant_id=new_tenant)
