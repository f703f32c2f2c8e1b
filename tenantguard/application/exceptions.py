"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ResourceNotFoundError(ApplicationError):
    """Raised when a resource does not exist or is soft-deleted and hidden from the principal."""


class UnknownResourceTypeError(ApplicationError):
    """Raised when no storage is registered for a resource type."""
