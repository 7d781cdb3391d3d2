"""Multi-tenancy: row-level isolation by organization.

Key components:
  - _tenant_ctx                  ContextVar holding the organization id for the current request
  - set / get / clear helpers for the ContextVar
  - validate_organization_id()   rejects malformed ids before they reach a query
"""

import re
from contextvars import ContextVar

from fastapi import HTTPException, status

# ── Request-scoped tenant context ───────────────────────────

_tenant_ctx: ContextVar[str | None] = ContextVar("_tenant_ctx", default=None)


def set_current_organization(organization_id: str) -> None:
    _tenant_ctx.set(organization_id)


def get_current_organization() -> str:
    """Return the current organization id or raise if unset."""
    organization_id = _tenant_ctx.get()
    if organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No organization context; this endpoint requires an organization-scoped user",
        )
    return organization_id


def clear_tenant_context() -> None:
    _tenant_ctx.set(None)


# ── Validation ──────────────────────────────────────────────

_ORG_ID_RE = re.compile(r"^[A-Za-z0-9_-]{3,64}$")


def validate_organization_id(organization_id: str) -> str:
    """Only allow short url-safe identifiers (uuid, slug, object id)."""
    if not _ORG_ID_RE.match(organization_id):
        raise ValueError(f"Invalid organization id: {organization_id!r}")
    return organization_id
