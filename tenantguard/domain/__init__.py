"""Domain layer: models, schemas, validators, exceptions. Pure business logic only."""

from tenantguard.domain.exceptions import (
    DomainError,
    DomainValidationError,
    InvalidPrincipalError,
    InvalidResourceStateError,
)
from tenantguard.domain.models import Operation, Principal, ResourceState, Role, Tenant
from tenantguard.domain.validators import validate_proposed_state, validate_resource_ref

__all__ = [
    "DomainError",
    "DomainValidationError",
    "InvalidPrincipalError",
    "InvalidResourceStateError",
    "Operation",
    "Principal",
    "ResourceState",
    "Role",
    "Tenant",
    "validate_proposed_state",
    "validate_resource_ref",
]
