"""Tenant isolation policy. Pure and side-effect free: no I/O, no audit writes. No FastAPI."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from tenantguard.domain.models.principal import Principal
from tenantguard.domain.models.resource import Operation


class AllowedIf(str, Enum):
    """Fixed rule variants. There is deliberately no general rule interpreter."""

    ADMINISTRATOR = "administrator"
    SAME_TENANT = "same_tenant"
    ANY_AUTHENTICATED = "any_authenticated"
    OWNER = "owner"


class DenialReason(str, Enum):
    CROSS_TENANT = "cross-tenant access"
    TENANT_MISMATCH_ON_CREATE = "tenant mismatch on create"
    NOT_FOUND = "resource not found"
    ADMIN_REQUIRED = "administrator required"
    NOT_OWNER = "not resource owner"


@dataclass(frozen=True)
class PolicyRule:
    resource_type: str
    operation: Operation
    allowed_if: AllowedIf


@dataclass(frozen=True)
class Decision:
    """Outcome of one evaluation. `rule` names the step that matched."""

    allowed: bool
    reason: str
    rule: str
    denial: Optional[DenialReason] = None

    @classmethod
    def allow(cls, rule: str, reason: str) -> "Decision":
        return cls(allowed=True, reason=reason, rule=rule)

    @classmethod
    def deny(cls, rule: str, denial: DenialReason) -> "Decision":
        return cls(allowed=False, reason=denial.value, rule=rule, denial=denial)


# Evaluation order (first match wins):
# 1 administrator                  -> allow
# 2 soft-deleted resource          -> deny (not found)
# 3 globally readable + read       -> allow
# 4 explicit (type, operation) rule: ADMINISTRATOR deny, ANY_AUTHENTICATED allow,
#   OWNER allow iff same tenant and owner (create: the creator owns it, continue),
#   SAME_TENANT continue
# 5 same tenant                    -> allow (create: supplied tenant absent or equal)
# 6 otherwise                      -> deny (cross-tenant access)


class PolicyEvaluator:
    """
    Decide whether a principal may perform an operation on a resource of a tenant.
    Safe to call speculatively (e.g. to render a UI affordance); recording is a separate call.
    """

    def __init__(
        self,
        rules: Iterable[PolicyRule] = (),
        globally_readable: Iterable[str] = (),
    ) -> None:
        self._rules: Dict[Tuple[str, Operation], AllowedIf] = {
            (rule.resource_type, rule.operation): rule.allowed_if for rule in rules
        }
        self._globally_readable: FrozenSet[str] = frozenset(globally_readable)

    def is_globally_readable(self, resource_type: str) -> bool:
        return resource_type in self._globally_readable

    def evaluate(
        self,
        principal: Principal,
        operation: Operation,
        resource_type: str,
        resource_tenant: Optional[str],
        *,
        resource_owner: Optional[str] = None,
        is_deleted: bool = False,
    ) -> Decision:
        """
        For CREATE, resource_tenant is the tenant-ownership value supplied with the
        proposed state (None when absent, meaning it will be auto-populated).
        """
        if principal.is_admin:
            return Decision.allow("admin-bypass", "administrator")

        if is_deleted:
            return Decision.deny("soft-deleted", DenialReason.NOT_FOUND)

        if operation == Operation.READ and resource_type in self._globally_readable:
            return Decision.allow("globally-readable", "globally readable resource type")

        allowed_if = self._rules.get((resource_type, operation), AllowedIf.SAME_TENANT)
        if allowed_if == AllowedIf.ADMINISTRATOR:
            return Decision.deny("admin-only", DenialReason.ADMIN_REQUIRED)
        if allowed_if == AllowedIf.ANY_AUTHENTICATED:
            return Decision.allow("any-authenticated", "authenticated principal")
        if allowed_if == AllowedIf.OWNER and operation != Operation.CREATE:
            tenant = self._same_tenant(principal, operation, resource_tenant)
            if not tenant.allowed:
                return tenant
            if resource_owner is not None and resource_owner == principal.principal_id:
                return Decision.allow("owner-only", "resource owner")
            return Decision.deny("owner-only", DenialReason.NOT_OWNER)

        return self._same_tenant(principal, operation, resource_tenant)

    @staticmethod
    def _same_tenant(
        principal: Principal,
        operation: Operation,
        resource_tenant: Optional[str],
    ) -> Decision:
        if principal.tenant_id is None:
            return Decision.deny("same-tenant", DenialReason.CROSS_TENANT)
        if operation == Operation.CREATE:
            if resource_tenant is None or resource_tenant == principal.tenant_id:
                return Decision.allow("same-tenant", "tenant match")
            return Decision.deny("same-tenant", DenialReason.TENANT_MISMATCH_ON_CREATE)
        if resource_tenant is not None and resource_tenant == principal.tenant_id:
            return Decision.allow("same-tenant", "tenant match")
        return Decision.deny("same-tenant", DenialReason.CROSS_TENANT)


def parse_rule(text: str) -> PolicyRule:
    """Parse 'resource_type:operation:allowed_if', e.g. 'stakeholder_notes:delete:administrator'."""
    try:
        resource_type, operation, allowed_if = (part.strip() for part in text.split(":"))
        return PolicyRule(resource_type, Operation(operation), AllowedIf(allowed_if))
    except ValueError as e:
        raise ValueError(f"invalid policy rule '{text}'") from e
