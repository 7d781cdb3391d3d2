"""Organization scoping for each request.

All organizations share one schema; every tenant table carries an
``organization_id`` column and every service query filters on it.  This
middleware reads the ``organization_id`` claim from the bearer token and
stores it in the request's ContextVar (``app.tenancy``), where
``get_current_organization`` picks it up.  The ContextVar is emptied again
once the response is produced, so a pooled task never inherits another
organization's id.

A token that fails to decode is answered with 401 here, except on the
public paths (health checks, API docs) which never read the organization.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.auth.jwt import decode_token
from app.tenancy import (
    clear_tenant_context,
    set_current_organization,
    validate_organization_id,
)

_PUBLIC_PREFIXES = ("/docs", "/openapi.json", "/health")


def _is_public(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in _PUBLIC_PREFIXES)


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": {"code": "HTTP_401", "message": "Token expired or invalid"}},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _scope_to_claims(payload: dict) -> None:
    """Set the organization from the token claims.

    A missing or malformed claim leaves the request unscoped; routes that
    need an organization then answer 400 from ``get_current_organization``.
    """
    organization_id = payload.get("organization_id")
    if not organization_id:
        return
    try:
        validate_organization_id(organization_id)
    except ValueError:
        return
    set_current_organization(organization_id)


class TenantMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        scheme, _, token = request.headers.get("authorization", "").partition(" ")

        clear_tenant_context()
        if scheme == "Bearer" and token:
            payload = decode_token(token)
            if payload:
                _scope_to_claims(payload)
            elif not _is_public(request.url.path):
                return _unauthorized()

        try:
            return await call_next(request)
        finally:
            clear_tenant_context()
