"""Pydantic schemas for wholesale challans."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from app.schemas.common import PaymentEntry
from app.schemas.validators import (
    to_naive_utc,
    validate_email,
    validate_gstin,
    validate_mobile,
    validate_state_code,
)


class OrderItemIn(BaseModel):
    design: str
    color: str
    size: str
    quantity: int
    price_per_unit: float

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @field_validator("price_per_unit")
    @classmethod
    def price_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v


class OrderCreate(BaseModel):
    buyer_name: str
    buyer_contact: str
    buyer_email: str | None = None
    buyer_address: str | None = None
    business_name: str | None = None
    gst_number: str | None = None
    state_code: str | None = None

    items: list[OrderItemIn]
    discount_type: str = "none"
    discount_value: float = 0.0
    gst_enabled: bool = True

    amount_paid: float = 0.0
    payment_method: str = "Cash"
    fulfillment_type: str = "warehouse"
    notes: str | None = None
    # Back-dated challans (entered after delivery)
    order_date: datetime | None = None

    @field_validator("buyer_name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Buyer name is required")
        return v.strip()

    @field_validator("buyer_contact")
    @classmethod
    def mobile_valid(cls, v: str) -> str:
        return validate_mobile(v)

    @field_validator("buyer_email")
    @classmethod
    def email_valid(cls, v: str | None) -> str | None:
        return validate_email(v)

    @field_validator("gst_number")
    @classmethod
    def gstin_valid(cls, v: str | None) -> str | None:
        return validate_gstin(v)

    @field_validator("state_code")
    @classmethod
    def state_code_valid(cls, v: str | None) -> str | None:
        return validate_state_code(v)

    @field_validator("items")
    @classmethod
    def items_required(cls, v: list[OrderItemIn]) -> list[OrderItemIn]:
        if not v:
            raise ValueError("At least one item is required")
        return v

    @field_validator("discount_type")
    @classmethod
    def valid_discount_type(cls, v: str) -> str:
        if v not in ("none", "percentage", "fixed"):
            raise ValueError("discount_type must be 'none', 'percentage' or 'fixed'")
        return v

    @field_validator("discount_value", "amount_paid")
    @classmethod
    def not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Must not be negative")
        return v

    @field_validator("fulfillment_type")
    @classmethod
    def valid_fulfillment(cls, v: str) -> str:
        if v not in ("warehouse", "factory_direct"):
            raise ValueError("fulfillment_type must be 'warehouse' or 'factory_direct'")
        return v

    @field_validator("order_date")
    @classmethod
    def order_date_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)


class OrderItemOut(BaseModel):
    design: str
    color: str
    size: str
    quantity: int
    price_per_unit: float
    subtotal: float


class OrderOut(BaseModel):
    id: str
    challan_number: str
    buyer_id: str
    buyer_name: str
    buyer_contact: str
    business_name: str | None = None
    gst_number: str | None = None
    fulfillment_type: str
    items: list[OrderItemOut]
    subtotal_amount: float
    discount_type: str
    discount_value: float
    discount_amount: float
    gst_enabled: bool
    gst_percentage: float | None = None
    taxable_amount: float
    gst_amount: float
    total_amount: float
    amount_paid: float
    amount_due: float
    payment_status: str
    payment_history: list[PaymentEntry]
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
