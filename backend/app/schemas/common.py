"""Common schemas used across the application."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, field_validator

from app.schemas.validators import to_naive_utc

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper.

    Usage:
        response_model=PaginatedResponse[BillSummary]

    Returns:
        {
            "items": [...],
            "total": 150,
            "limit": 50,
            "offset": 0
        }
    """
    items: list[T]
    total: int
    limit: int
    offset: int


class PaymentCreate(BaseModel):
    """Money received against a bill, a challan or a buyer.

    Amount bounds depend on what is being paid, so they are checked by the
    service (INVALID_AMOUNT) rather than here.
    """
    amount: float
    payment_method: str = "Cash"
    payment_date: datetime | None = None
    notes: str | None = None

    @field_validator("payment_date")
    @classmethod
    def payment_date_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)


class PaymentEntry(BaseModel):
    amount: float
    payment_date: str | None = None
    payment_method: str | None = None
    notes: str | None = None
    recorded_by: str | None = None
    recorded_by_role: str | None = None
    # challan_import | manual | allocation | advance (bills only)
    source: str | None = None
    challan_id: str | None = None
