"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user         → decode JWT, return a CurrentUser principal
  get_current_org          → organization id resolved by TenantMiddleware
  require_role(...)        → restrict to specific roles
  require_permission(...)  → restrict to specific granular permissions

Users live in the external auth service, so the principal is built from
the token claims alone (no DB lookup).
"""

from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.auth.jwt import decode_token
from app.auth.permissions import has_permission
from app.tenancy import get_current_organization

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


@dataclass
class CurrentUser:
    id: str
    role: str
    organization_id: str | None
    email: str | None = None
    permissions: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.email or self.id


# ── Core user dependency ────────────────────────────────────

async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        id=user_id,
        role=payload.get("role", ""),
        organization_id=payload.get("organization_id"),
        email=payload.get("email"),
        permissions=payload.get("permissions", []),
    )


# ── Tenant context ──────────────────────────────────────────

async def get_current_org(user: CurrentUser = Depends(get_current_user)) -> str:
    """Return the organization id set by TenantMiddleware.

    Raises 403 if the token carries no organization.
    """
    if not user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No organization context; join an organization first",
        )
    return get_current_organization()


# ── Role-based access control ───────────────────────────────

def require_role(*roles: str):
    """Dependency factory: restrict to one or more roles.

    Usage:
        @router.delete("/{bill_id}/payments/{index}")
        async def delete_payment(user: CurrentUser = Depends(require_role("admin"))):
            ...
    """
    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return user

    return _check


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory: restrict to users who hold ALL listed permissions.

    Reads permissions from the JWT claims, so this is a zero-DB-hit check.
    """
    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        missing = [p for p in perms if not has_permission(user.permissions, p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(missing)}",
            )
        return user

    return _check
