"""Principal and role. Identity is the verified token subject, never a display value."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tenantguard.domain.exceptions import InvalidPrincipalError


class Role(str, Enum):
    REGULAR = "regular"
    ADMINISTRATOR = "administrator"


@dataclass(frozen=True)
class Principal:
    """
    Authenticated actor. Administrators are not pinned to a tenant, so tenant_id may be None.
    A regular principal without a tenant binding only reaches globally readable resources.
    """

    principal_id: str
    role: Role
    tenant_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.principal_id or not self.principal_id.strip():
            raise InvalidPrincipalError("principal_id must not be empty")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMINISTRATOR
