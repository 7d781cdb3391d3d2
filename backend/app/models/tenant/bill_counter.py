"""BillNumberCounter: per-organization reference counter for bill numbers.

Row-locked while a number is allocated. The allocator scans live bill
numbers and reuses gaps, so ``last_sequence`` is the highest number ever
issued in ``financial_year``, not the next one to hand out.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class BillNumberCounter(Base):
    __tablename__ = "bill_number_counters"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    financial_year: Mapped[str] = mapped_column(String(7), nullable=False)
    last_sequence: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
