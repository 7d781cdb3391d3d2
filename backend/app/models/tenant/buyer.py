"""WholesaleBuyer: a wholesale customer and its running ledger.

Created on the first order from an unknown mobile number; never deleted.

``monthly_bills`` is a denormalized summary of every MonthlyBill issued to
the buyer:
    [{"bill_id", "bill_number", "month", "year", "invoice_total",
      "amount_paid", "balance_due", "status", "generated_at"}]

``total_due`` / ``total_paid`` are derived: they always equal the sums of
``balance_due`` / ``amount_paid`` over ``monthly_bills`` (see
``app.services.ledger.sync_buyer_ledger``).

``advance_payments`` holds money received when nothing was outstanding:
    [{"amount", "payment_date", "payment_method", "notes", "recorded_by"}]
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class WholesaleBuyer(Base):
    __tablename__ = "wholesale_buyers"
    __table_args__ = (
        UniqueConstraint("organization_id", "mobile", name="uq_buyer_org_mobile"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # ── Identity ─────────────────────────────────────────────
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile: Mapped[str] = mapped_column(String(15), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    business_name: Mapped[str | None] = mapped_column(String(255))
    gst_number: Mapped[str | None] = mapped_column(String(20))
    pan: Mapped[str | None] = mapped_column(String(10))
    address: Mapped[str | None] = mapped_column(Text)
    state_code: Mapped[str | None] = mapped_column(String(2))

    # ── Credit ───────────────────────────────────────────────
    credit_limit: Mapped[float] = mapped_column(Float, default=0.0)

    # ── Running totals ───────────────────────────────────────
    total_orders: Mapped[int] = mapped_column(Integer, default=0)
    total_spent: Mapped[float] = mapped_column(Float, default=0.0)
    total_due: Mapped[float] = mapped_column(Float, default=0.0)
    total_paid: Mapped[float] = mapped_column(Float, default=0.0)
    last_order_date: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Embedded ledgers ─────────────────────────────────────
    monthly_bills: Mapped[list] = mapped_column(JSON, default=list)
    advance_payments: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
