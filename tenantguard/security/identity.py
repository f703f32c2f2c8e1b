"""Identity resolution: opaque caller token -> Principal. No FastAPI."""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol

import jwt

from tenantguard.domain.exceptions import InvalidPrincipalError
from tenantguard.domain.models.principal import Principal, Role
from tenantguard.security.exceptions import IdentityResolutionError


class IdentityResolver(Protocol):
    """Supplied by the surrounding authentication layer."""

    async def resolve_principal(self, token: str) -> Principal:
        """Return the principal for token. Raises IdentityResolutionError if unknown or invalid."""
        ...


class PrincipalDirectory(Protocol):
    """Server-side role and tenant bindings. When configured, token role/tenant claims are ignored."""

    async def lookup(self, principal_id: str) -> Optional[Principal]:
        """Bound principal, or None when unbound or bound to a deleted/inactive tenant."""
        ...


def _principal_from_claims(claims: Dict[str, object]) -> Principal:
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise IdentityResolutionError("Token has no subject")
    try:
        role = Role(str(claims.get("role", Role.REGULAR.value)).lower())
    except ValueError as e:
        raise IdentityResolutionError(f"Unknown role in token: {claims.get('role')}") from e
    tenant_id = claims.get("tenant_id")
    if tenant_id is not None and not isinstance(tenant_id, str):
        raise IdentityResolutionError("tenant_id claim must be a string")
    try:
        return Principal(principal_id=subject, role=role, tenant_id=tenant_id or None)
    except InvalidPrincipalError as e:
        raise IdentityResolutionError(e.message) from e


class JwtIdentityResolver:
    """
    Resolves signed bearer tokens. The principal id is the `sub` claim (the
    verified subject), never an email. Claims: sub, role, tenant_id, exp.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        directory: Optional[PrincipalDirectory] = None,
    ) -> None:
        if not secret:
            raise ValueError("JWT secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._directory = directory

    async def resolve_principal(self, token: str) -> Principal:
        if not token:
            raise IdentityResolutionError("Missing bearer token")
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise IdentityResolutionError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise IdentityResolutionError(f"Invalid token: {e}") from e
        principal = _principal_from_claims(claims)
        if self._directory is None:
            return principal
        bound = await self._directory.lookup(principal.principal_id)
        if bound is None:
            raise IdentityResolutionError(f"No active binding for principal '{principal.principal_id}'")
        return bound

    def issue_token(self, principal: Principal, expires_in_minutes: int = 60) -> str:
        """Sign a token for principal. Used by dev tooling and tests; production tokens come from the auth layer."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": principal.principal_id,
            "role": principal.role.value,
            "tenant_id": principal.tenant_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=expires_in_minutes)).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)


class StaticIdentityResolver:
    """Fixed token -> principal map. For tests and local development."""

    def __init__(self, principals: Optional[Dict[str, Principal]] = None) -> None:
        self._principals: Dict[str, Principal] = dict(principals or {})

    def register(self, token: str, principal: Principal) -> None:
        self._principals[token] = principal

    async def resolve_principal(self, token: str) -> Principal:
        principal = self._principals.get(token)
        if principal is None:
            raise IdentityResolutionError("Unknown token")
        return principal
