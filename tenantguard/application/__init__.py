# Application layer: services that orchestrate domain, security, governance and storage.

from tenantguard.application.access_service import AccessControlService
from tenantguard.application.exceptions import (
    ApplicationError,
    ResourceNotFoundError,
    UnknownResourceTypeError,
)
from tenantguard.application.resource_store import ResourceStore
from tenantguard.application.unit_of_work import UnitOfWork, UnitOfWorkFactory

__all__ = [
    "AccessControlService",
    "ApplicationError",
    "ResourceNotFoundError",
    "UnknownResourceTypeError",
    "ResourceStore",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
