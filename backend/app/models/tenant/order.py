"""WholesaleOrder: a delivery challan issued to a wholesale buyer.

Amounts are GST inclusive: ``total_amount = taxable_amount + gst_amount``
where ``taxable_amount = subtotal_amount - discount_amount``. The GST rate
in force when the challan was written is kept in ``gst_percentage``.

items (JSON):
    [{"design": "D-101", "color": "Navy", "size": "M",
      "quantity": 12, "price_per_unit": 450.0, "subtotal": 5400.0}]

payment_history (JSON):
    [{"amount", "payment_date", "payment_method", "notes", "recorded_by"}]

Lifecycle: payment_status  Pending → Partial → Paid
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class WholesaleOrder(Base):
    __tablename__ = "wholesale_orders"
    __table_args__ = (
        UniqueConstraint("organization_id", "challan_number", name="uq_order_org_challan"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    challan_number: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Buyer ────────────────────────────────────────────────
    buyer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("wholesale_buyers.id"), nullable=False, index=True
    )
    buyer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    buyer_contact: Mapped[str] = mapped_column(String(15), nullable=False)
    business_name: Mapped[str | None] = mapped_column(String(255))
    gst_number: Mapped[str | None] = mapped_column(String(20))
    # warehouse (drawn from stock) | factory_direct (shipped from the factory, no stock movement)
    fulfillment_type: Mapped[str] = mapped_column(String(20), default="warehouse")

    # ── Lines & amounts ──────────────────────────────────────
    items: Mapped[list] = mapped_column(JSON, default=list)
    subtotal_amount: Mapped[float] = mapped_column(Float, default=0.0)
    discount_type: Mapped[str] = mapped_column(String(20), default="none")
    discount_value: Mapped[float] = mapped_column(Float, default=0.0)
    discount_amount: Mapped[float] = mapped_column(Float, default=0.0)
    gst_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    gst_percentage: Mapped[float | None] = mapped_column(Float)
    taxable_amount: Mapped[float] = mapped_column(Float, default=0.0)
    gst_amount: Mapped[float] = mapped_column(Float, default=0.0)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Payment ──────────────────────────────────────────────
    amount_paid: Mapped[float] = mapped_column(Float, default=0.0)
    amount_due: Mapped[float] = mapped_column(Float, nullable=False)
    # Pending | Partial | Paid
    payment_status: Mapped[str] = mapped_column(String(20), default="Pending")
    payment_history: Mapped[list] = mapped_column(JSON, default=list)

    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
