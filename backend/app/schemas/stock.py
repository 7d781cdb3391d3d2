"""Pydantic schemas for stock pools and transfers."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from app.models.tenant.stock import STOCK_POOLS


def _check_pool(v: str) -> str:
    if v not in STOCK_POOLS:
        raise ValueError(f"pool must be one of: {', '.join(STOCK_POOLS)}")
    return v


class StockReceive(BaseModel):
    design: str
    color: str
    size: str
    quantity: int
    pool: str = "main"

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @field_validator("pool")
    @classmethod
    def valid_pool(cls, v: str) -> str:
        return _check_pool(v)


class StockOut(BaseModel):
    id: str
    design: str
    color: str
    size: str
    main_stock: int
    reserved_stock: int
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class TransferCreate(BaseModel):
    design: str
    color: str
    size: str
    quantity: int
    from_pool: str
    to_pool: str
    notes: str | None = None

    @field_validator("quantity")
    @classmethod
    def quantity_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @field_validator("from_pool", "to_pool")
    @classmethod
    def valid_pool(cls, v: str) -> str:
        return _check_pool(v)


class TransferOut(BaseModel):
    id: str
    design: str
    color: str
    size: str
    quantity: int
    from_pool: str
    to_pool: str
    transfer_type: str
    related_order_id: str | None = None
    notes: str | None = None
    performed_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
