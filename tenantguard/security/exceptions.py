"""Security-layer exceptions. Typed, no HTTP."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from tenantguard.security.policy import Decision


class SecurityError(Exception):
    """Base for all security-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AccessDeniedError(SecurityError):
    """Raised when the policy evaluator denies an operation. Routine outcome, always audited."""

    def __init__(self, message: str, decision: Optional["Decision"] = None) -> None:
        super().__init__(message)
        self.decision = decision


class TenantMismatchError(SecurityError):
    """Raised when a create or update carries a tenant-ownership value the principal may not set."""

    def __init__(self, message: str, reason: str = "tenant mismatch") -> None:
        super().__init__(message)
        self.reason = reason


class IdentityResolutionError(SecurityError):
    """Raised when a caller token cannot be resolved to a principal."""
