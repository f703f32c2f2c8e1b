"""Domain validators. Pure validation functions."""

from tenantguard.domain.validators.resource_validator import (
    validate_proposed_state,
    validate_resource_ref,
)

__all__ = [
    "validate_proposed_state",
    "validate_resource_ref",
]
