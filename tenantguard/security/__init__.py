"""Security: identity resolution, tenant isolation policy, tenant-binding guard. No FastAPI."""

from tenantguard.security.identity import (
    IdentityResolver,
    JwtIdentityResolver,
    PrincipalDirectory,
    StaticIdentityResolver,
)
from tenantguard.security.policy import (
    AllowedIf,
    Decision,
    DenialReason,
    PolicyEvaluator,
    PolicyRule,
    parse_rule,
)
from tenantguard.security.tenant_guard import TenantBindingGuard, TenantReassignment

__all__ = [
    "AllowedIf",
    "Decision",
    "DenialReason",
    "IdentityResolver",
    "JwtIdentityResolver",
    "PolicyEvaluator",
    "PolicyRule",
    "PrincipalDirectory",
    "StaticIdentityResolver",
    "TenantBindingGuard",
    "TenantReassignment",
    "parse_rule",
]
