"""Validators for resource references and proposed states. Pure functions, no infrastructure or DB access."""

import json
from typing import Any, Mapping, Optional

from tenantguard.domain.exceptions import DomainValidationError, InvalidResourceStateError
from tenantguard.domain.models.resource import BOOKKEEPING_FIELDS


def validate_resource_ref(resource_type: str, resource_id: Optional[str]) -> None:
    """Resource type and id must be non-empty. Raises DomainValidationError if invalid."""
    if not resource_type or not resource_type.strip():
        raise DomainValidationError("resource_type must not be empty")
    if resource_id is not None and not str(resource_id).strip():
        raise DomainValidationError("resource_id must not be empty")


def validate_proposed_state(state: Optional[Mapping[str, Any]]) -> None:
    """
    Proposed state must be a JSON-serializable mapping that does not try to set
    storage-owned bookkeeping fields. Raises InvalidResourceStateError otherwise.
    """
    if state is None:
        return
    if not isinstance(state, Mapping):
        raise InvalidResourceStateError("proposed state must be a mapping")
    forbidden = sorted(BOOKKEEPING_FIELDS.intersection(state.keys()))
    if forbidden:
        raise InvalidResourceStateError(
            f"proposed state may not set bookkeeping fields: {', '.join(forbidden)}"
        )
    try:
        json.dumps(dict(state))
    except (TypeError, ValueError) as e:
        raise InvalidResourceStateError("proposed state must be JSON-serializable") from e
