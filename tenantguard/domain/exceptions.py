"""Domain-specific exceptions. Pure domain layer, no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when domain validation rules are violated."""


class InvalidPrincipalError(DomainError):
    """Raised when a principal is malformed (e.g. empty id)."""


class InvalidResourceStateError(DomainError):
    """Raised when a proposed resource state is not a JSON-compatible mapping."""
