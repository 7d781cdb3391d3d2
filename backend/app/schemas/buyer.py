"""Pydantic schemas for wholesale buyers and their ledger."""

from datetime import datetime

from pydantic import BaseModel

from app.schemas.common import PaymentEntry


class BillLedgerRow(BaseModel):
    bill_id: str
    bill_number: str
    month: str
    year: int
    invoice_total: float
    amount_paid: float
    balance_due: float
    status: str
    generated_at: str | None = None


class BuyerSummary(BaseModel):
    id: str
    name: str
    mobile: str
    business_name: str | None = None
    gst_number: str | None = None
    state_code: str | None = None
    total_orders: int
    total_spent: float
    total_due: float
    total_paid: float
    last_order_date: datetime | None = None

    model_config = {"from_attributes": True}


class BuyerDetail(BuyerSummary):
    email: str | None = None
    pan: str | None = None
    address: str | None = None
    credit_limit: float
    monthly_bills: list[BillLedgerRow]
    advance_payments: list[PaymentEntry]
    created_at: datetime


class AllocatedBill(BaseModel):
    bill_id: str
    bill_number: str
    amount: float
    status: str


class AllocatedOrder(BaseModel):
    order_id: str
    challan_number: str
    amount: float
    payment_status: str


class BuyerPaymentResult(BaseModel):
    buyer_id: str
    amount_received: float
    amount_allocated: float
    advance_amount: float
    advance_applied: float = 0.0
    bills_affected: list[AllocatedBill]
    orders_affected: list[AllocatedOrder]
    total_due: float
    total_advance: float
