"""MonthlyBill: consolidated GST invoice for one buyer and one month.

Built from every challan the buyer received in the period. Company and
buyer details, and each challan's amounts, are frozen into the bill when
it is generated; the source orders are not re-read afterwards.

challans (JSON):
    [{"challan_id", "challan_number", "challan_date", "items_qty",
      "taxable_amount", "gst_amount", "total_amount"}]

payment_history (JSON):
    [{"amount", "payment_date", "payment_method", "notes", "recorded_by",
      "recorded_by_role", "source", "challan_id"}]
    source: challan_import (paid on the challan before the bill existed)
          | manual         (recorded against this bill)
          | allocation     (share of a buyer-level payment)

Invariants:
    grand_total = invoice_total + previous_outstanding
    balance_due = max(0, grand_total - amount_paid)

Lifecycle:  draft → generated → sent → partial → paid
            (overdue when past due; paid → partial → generated on payment deletion)
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

BILL_STATUSES = ("draft", "generated", "sent", "partial", "paid", "overdue")
# Statuses whose balance is carried into the next period's bill
UNPAID_STATUSES = ("generated", "sent", "partial", "overdue")


class MonthlyBill(Base):
    __tablename__ = "monthly_bills"
    __table_args__ = (
        UniqueConstraint("organization_id", "bill_number", name="uq_bill_org_number"),
        UniqueConstraint(
            "organization_id", "buyer_id", "period_month", "period_year",
            name="uq_bill_org_buyer_period",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    bill_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    financial_year: Mapped[str] = mapped_column(String(7), nullable=False, index=True)

    # ── Parties (frozen snapshots) ───────────────────────────
    company: Mapped[dict] = mapped_column(JSON, nullable=False)
    buyer: Mapped[dict] = mapped_column(JSON, nullable=False)
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wholesale_buyers.id"), nullable=False, index=True
    )

    # ── Billing period ───────────────────────────────────────
    period_month: Mapped[str] = mapped_column(String(10), nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # ── Challans (frozen snapshots) ──────────────────────────
    challans: Mapped[list] = mapped_column(JSON, default=list)

    # ── Financials (all derived) ─────────────────────────────
    total_taxable_amount: Mapped[float] = mapped_column(Float, default=0.0)
    cgst: Mapped[float] = mapped_column(Float, default=0.0)
    sgst: Mapped[float] = mapped_column(Float, default=0.0)
    igst: Mapped[float] = mapped_column(Float, default=0.0)
    gst_rate: Mapped[float] = mapped_column(Float, default=5.0)
    invoice_total: Mapped[float] = mapped_column(Float, nullable=False)
    previous_outstanding: Mapped[float] = mapped_column(Float, default=0.0)
    grand_total: Mapped[float] = mapped_column(Float, nullable=False)
    amount_paid: Mapped[float] = mapped_column(Float, default=0.0)
    balance_due: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Status & payments ────────────────────────────────────
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    payment_history: Mapped[list] = mapped_column(JSON, default=list)
    payment_due_date: Mapped[datetime | None] = mapped_column(DateTime)

    hsn_code: Mapped[str] = mapped_column(String(10), default="6203")
    notes: Mapped[str | None] = mapped_column(Text)

    # ── Dates ────────────────────────────────────────────────
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
