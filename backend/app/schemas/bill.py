"""Pydantic schemas for monthly bills."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from app.schemas.common import PaymentEntry


class BillGenerateRequest(BaseModel):
    buyer_id: str
    month: str
    year: int
    company_id: str | None = None


class BillCustomize(BaseModel):
    company_id: str | None = None
    payment_term_days: int | None = None
    hsn_code: str | None = None
    notes: str | None = None
    remove_challan_ids: list[str] | None = None

    @field_validator("payment_term_days")
    @classmethod
    def term_in_range(cls, v: int | None) -> int | None:
        if v is not None and not 0 <= v <= 365:
            raise ValueError("payment_term_days must be between 0 and 365")
        return v


class BillNumberUpdate(BaseModel):
    sequence: int


class ChallanLine(BaseModel):
    challan_id: str
    challan_number: str
    challan_date: str
    items_qty: int
    taxable_amount: float
    gst_amount: float
    total_amount: float


class BillSummary(BaseModel):
    id: str
    bill_number: str
    financial_year: str
    buyer_id: str
    buyer_name: str | None = None
    business_name: str | None = None
    period_month: str
    period_year: int
    invoice_total: float
    grand_total: float
    amount_paid: float
    balance_due: float
    status: str
    payment_due_date: datetime | None = None
    generated_at: datetime


class BillOut(BaseModel):
    id: str
    bill_number: str
    financial_year: str
    company: dict
    buyer: dict
    buyer_id: str
    period_month: str
    period_year: int
    period_start: datetime
    period_end: datetime
    challans: list[ChallanLine]
    total_taxable_amount: float
    cgst: float
    sgst: float
    igst: float
    gst_rate: float
    invoice_total: float
    previous_outstanding: float
    grand_total: float
    amount_paid: float
    balance_due: float
    status: str
    payment_history: list[PaymentEntry]
    payment_due_date: datetime | None = None
    hsn_code: str
    notes: str | None = None
    generated_at: datetime
    finalized_at: datetime | None = None
    sent_at: datetime | None = None
    paid_at: datetime | None = None

    model_config = {"from_attributes": True}


class BillStats(BaseModel):
    total_bills: int
    draft_bills: int
    pending_bills: int
    paid_bills: int
    overdue_bills: int
    total_revenue: float
    total_outstanding: float
    total_collected: float
    this_month_revenue: float
    this_month_count: int


class PaymentDeleted(BaseModel):
    bill: BillOut
    removed_payment: PaymentEntry


class BillDeleted(BaseModel):
    bill_number: str
    deleted: bool = True


class OverdueSweepResult(BaseModel):
    count: int
    bill_numbers: list[str]
