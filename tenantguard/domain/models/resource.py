"""Resource operations and bookkeeping field names shared by storage adapters."""

from enum import Enum
from typing import Any, Dict

ResourceState = Dict[str, Any]

ID_FIELD = "id"
OWNER_FIELD = "owner_id"
CREATED_AT_FIELD = "created_at"
UPDATED_AT_FIELD = "updated_at"
DELETED_AT_FIELD = "deleted_at"

# Fields a caller may not set through a proposed state; storage owns them.
BOOKKEEPING_FIELDS = frozenset(
    {ID_FIELD, OWNER_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD, DELETED_AT_FIELD}
)


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def is_mutation(self) -> bool:
        return self is not Operation.READ


def is_soft_deleted(state: ResourceState | None) -> bool:
    return bool(state) and state.get(DELETED_AT_FIELD) is not None
