"""Application exceptions and the handlers that turn them into JSON.

Every error leaves the API in one shape:

    {"error": {"code": "NOT_DRAFT", "message": "...", "details": {...}}}

Taxonomy:
  - validation / business-rule / state conflicts  → 400
  - missing buyer, bill, company, order, stock     → 404
  - database unreachable                           → 503
  - unexpected errors                              → 500 (logged, generic message)
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# Unique constraints with a dedicated error code
_CONSTRAINT_CODES = {
    "uq_bill_org_number": ("DUPLICATE_BILL_NUMBER", "That bill number is already in use"),
    "uq_bill_org_buyer_period": ("DUPLICATE_PERIOD", "A bill already exists for this buyer and month"),
    "uq_order_org_challan": ("DUPLICATE_CHALLAN", "That challan number is already in use"),
    "uq_buyer_org_mobile": ("DUPLICATE_BUYER", "A buyer with this mobile number already exists"),
    "uq_stock_variant": ("DUPLICATE_VARIANT", "This design/colour/size already has a stock row"),
}


class ChallanBookException(Exception):
    """Base exception; carries the HTTP status and a machine-readable code."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class BusinessLogicError(ChallanBookException):
    """Business rule or state violation (duplicate period, non-draft edit, ...)."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, error_code)


class ResourceNotFoundError(ChallanBookException):

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"{resource} not found: {identifier}",
            status.HTTP_404_NOT_FOUND,
            "RESOURCE_NOT_FOUND",
        )


def error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    body = {"code": error_code, "message": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


def _context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


# ── Handlers ────────────────────────────────────────────────


async def challanbook_exception_handler(
    request: Request, exc: ChallanBookException,
) -> JSONResponse:
    logger.warning(
        "%s on %s: %s", exc.error_code, request.url.path, exc.message,
        extra={"error_code": exc.error_code, **_context(request)},
    )
    return error_response(exc.status_code, exc.message, exc.error_code)


async def http_exception_handler(
    request: Request, exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %d: %s", exc.status_code, exc.detail, extra=_context(request))
    return error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Request body/query failed validation: 400 with one entry per field."""
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Validation error on %s (%d field(s))", request.url.path, len(errors),
        extra=_context(request),
    )
    return error_response(
        status.HTTP_400_BAD_REQUEST, "Validation error", "VALIDATION_ERROR",
        details={"errors": errors},
    )


def classify_integrity_error(exc: IntegrityError) -> tuple[str, str]:
    """Map a constraint violation to (error_code, message)."""
    text = str(getattr(exc, "orig", exc))
    for constraint, outcome in _CONSTRAINT_CODES.items():
        if constraint in text:
            return outcome
    lowered = text.lower()
    if "unique" in lowered:
        return "DUPLICATE_RECORD", "A record with this value already exists"
    if "foreign key" in lowered:
        return "FOREIGN_KEY_VIOLATION", "Referenced record does not exist"
    if "not null" in lowered:
        return "NULL_VALUE_NOT_ALLOWED", "Required field is missing"
    return "INTEGRITY_ERROR", "Database constraint violation"


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    error_code, message = classify_integrity_error(exc)
    logger.error(
        "Integrity error on %s: %s", request.url.path, exc.orig,
        extra={"error_code": error_code, **_context(request)},
    )
    return error_response(status.HTTP_400_BAD_REQUEST, message, error_code)


async def operational_exception_handler(
    request: Request, exc: OperationalError,
) -> JSONResponse:
    logger.error("Database unavailable on %s: %s", request.url.path, exc, extra=_context(request))
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Database temporarily unavailable. Please try again.",
        "DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s", request.url.path, extra=_context(request))
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(ChallanBookException, challanbook_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
