"""Stock pools and the transfer audit trail.

Each design/colour/size variant holds two pools:
  - main      sold through wholesale challans
  - reserved  held back for marketplace orders

StockTransfer rows are append-only; they are never updated or deleted.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

STOCK_POOLS = ("main", "reserved")


class ProductStock(Base):
    __tablename__ = "product_stock"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "design", "color", "size", name="uq_stock_variant",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    design: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(50), nullable=False)
    size: Mapped[str] = mapped_column(String(10), nullable=False)

    main_stock: Mapped[int] = mapped_column(Integer, default=0)
    reserved_stock: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class StockTransfer(Base):
    __tablename__ = "stock_transfers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    stock_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("product_stock.id"), nullable=False, index=True
    )
    design: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(50), nullable=False)
    size: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # main | reserved
    from_pool: Mapped[str] = mapped_column(String(10), nullable=False)
    to_pool: Mapped[str] = mapped_column(String(10), nullable=False)
    # manual | borrow
    transfer_type: Mapped[str] = mapped_column(String(20), default="manual")
    related_order_id: Mapped[str | None] = mapped_column(String(36))

    notes: Mapped[str | None] = mapped_column(Text)
    performed_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
