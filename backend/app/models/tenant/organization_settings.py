"""OrganizationSettings: seller identity and billing configuration.

One row per organization. Older organizations only have the flat
``company_name`` / ``gst_number`` / ``address`` fields; the bill generator
migrates those into ``companies`` the first time it runs.

companies (JSON list):
    [{"id": "company1", "name": ..., "legal_name": ..., "gstin": ..., "pan": ...,
      "address": {"line1", "line2", "city", "state", "pincode", "state_code"},
      "contact": {"phone", "email"}, "bank": {"name", "account_no", "ifsc", "branch"},
      "is_default": true, "is_active": true}]

billing_settings (JSON):
    {"auto_generate_bills": true, "payment_term_days": 30,
     "default_company_id": "company1", "hsn_code": "6203",
     "gst_rate": 5, "bill_number_prefix": "VR"}
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class OrganizationSettings(Base):
    __tablename__ = "organization_settings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )

    # ── Legacy flat identity ─────────────────────────────────
    company_name: Mapped[str | None] = mapped_column(String(255))
    gst_number: Mapped[str | None] = mapped_column(String(20))
    address: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(String(20))
    email: Mapped[str | None] = mapped_column(String(255))
    gst_percentage: Mapped[float | None] = mapped_column(Float)

    # ── Multi-company billing ────────────────────────────────
    companies: Mapped[list | None] = mapped_column(JSON, default=list)
    billing_settings: Mapped[dict | None] = mapped_column(JSON, default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
