"""Wholesale challan entry and buyer lookup.

Creating a challan finds the buyer by mobile number (creating them on the
first order), prices the lines, takes the quantities out of stock and
records any payment made on the spot.  Challan totals are GST inclusive;
monthly bills later split them back into taxable value and GST.
"""

import logging
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.order import WholesaleOrder
from app.schemas.order import OrderCreate
from app.services.org_config import current_gst_rate
from app.services.payments import derive_order_status, payment_entry
from app.services.stock import deduct_for_order
from app.utils.money import money, money_sum
from app.utils.numbering import generate_challan_number

logger = logging.getLogger(__name__)


def price_lines(items: list[dict]) -> tuple[list[dict], float]:
    lines = [
        {**item, "subtotal": money(item["quantity"] * item["price_per_unit"])}
        for item in items
    ]
    return lines, money_sum(line["subtotal"] for line in lines)


def discount_for(subtotal: float, discount_type: str, value: float) -> float:
    """Discount amount, never more than the subtotal."""
    if discount_type == "percentage":
        return money(subtotal * min(value, 100) / 100)
    if discount_type == "fixed":
        return money(min(value, subtotal))
    return 0.0


async def find_or_create_buyer(
    db: AsyncSession, organization_id: str, body: OrderCreate,
) -> WholesaleBuyer:
    buyer = await db.scalar(
        select(WholesaleBuyer).where(
            WholesaleBuyer.organization_id == organization_id,
            WholesaleBuyer.mobile == body.buyer_contact,
        )
    )
    if buyer is None:
        buyer = WholesaleBuyer(
            organization_id=organization_id,
            name=body.buyer_name,
            mobile=body.buyer_contact,
            email=body.buyer_email,
            address=body.buyer_address,
            business_name=body.business_name,
            gst_number=body.gst_number,
            state_code=body.state_code,
            total_orders=0,
            total_spent=0.0,
            total_due=0.0,
            total_paid=0.0,
            monthly_bills=[],
            advance_payments=[],
        )
        db.add(buyer)
        await db.flush()
        logger.info(
            "Created buyer %s (%s)", buyer.name, buyer.mobile,
            extra={"organization_id": organization_id, "buyer_id": buyer.id},
        )
        return buyer

    # Details entered on the challan refresh the buyer record
    for attr, value in (
        ("email", body.buyer_email),
        ("address", body.buyer_address),
        ("business_name", body.business_name),
        ("gst_number", body.gst_number),
        ("state_code", body.state_code),
    ):
        if value and value != getattr(buyer, attr):
            setattr(buyer, attr, value)
    return buyer


async def create_order(
    db: AsyncSession,
    organization_id: str,
    body: OrderCreate,
    created_by: str | None = None,
) -> WholesaleOrder:
    buyer = await find_or_create_buyer(db, organization_id, body)

    items, subtotal = price_lines([i.model_dump() for i in body.items])
    discount = discount_for(subtotal, body.discount_type, body.discount_value)
    taxable = money(subtotal - discount)
    gst_rate = await current_gst_rate(db, organization_id) if body.gst_enabled else 0.0
    gst_amount = money(taxable * gst_rate / 100)
    total = money(taxable + gst_amount)

    if body.amount_paid > total:
        raise BusinessLogicError(
            f"Amount paid cannot exceed the challan total {total:.2f}",
            error_code="INVALID_AMOUNT",
        )

    business_name = body.business_name or buyer.business_name or buyer.name
    challan_number = await generate_challan_number(db, organization_id, business_name)
    created_at = body.order_date or datetime.utcnow()

    order = WholesaleOrder(
        organization_id=organization_id,
        challan_number=challan_number,
        buyer_id=buyer.id,
        buyer_name=body.buyer_name,
        buyer_contact=body.buyer_contact,
        business_name=business_name,
        gst_number=body.gst_number or buyer.gst_number,
        fulfillment_type=body.fulfillment_type,
        items=items,
        subtotal_amount=subtotal,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        discount_amount=discount,
        gst_enabled=body.gst_enabled,
        gst_percentage=gst_rate,
        taxable_amount=taxable,
        gst_amount=gst_amount,
        total_amount=total,
        amount_paid=0.0,
        amount_due=total,
        payment_history=[],
        notes=body.notes,
        created_by=created_by,
        created_at=created_at,
    )
    if body.amount_paid > 0:
        order.payment_history = [
            payment_entry(
                body.amount_paid,
                payment_method=body.payment_method,
                payment_date=created_at,
                notes="Paid at order",
                recorded_by=created_by,
            )
        ]
        order.amount_paid = money(body.amount_paid)
        order.amount_due = money(total - order.amount_paid)
    order.payment_status = derive_order_status(order)

    db.add(order)
    await db.flush()

    if body.fulfillment_type != "factory_direct":
        await deduct_for_order(db, organization_id, items, order.id, performed_by=created_by)

    buyer.total_orders = (buyer.total_orders or 0) + 1
    buyer.total_spent = money((buyer.total_spent or 0) + total)
    if buyer.last_order_date is None or created_at > buyer.last_order_date:
        buyer.last_order_date = created_at
    await db.flush()

    logger.info(
        "Created challan %s for %s: total=%.2f paid=%.2f",
        order.challan_number, buyer.name, total, order.amount_paid,
        extra={"organization_id": organization_id, "order_id": order.id},
    )
    return order


async def list_orders(
    db: AsyncSession,
    organization_id: str,
    *,
    buyer_id: str | None = None,
    payment_status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[WholesaleOrder], int]:
    filters = [WholesaleOrder.organization_id == organization_id]
    if buyer_id:
        filters.append(WholesaleOrder.buyer_id == buyer_id)
    if payment_status:
        filters.append(WholesaleOrder.payment_status == payment_status)

    total = await db.scalar(select(func.count(WholesaleOrder.id)).where(*filters)) or 0
    result = await db.execute(
        select(WholesaleOrder)
        .where(*filters)
        .order_by(WholesaleOrder.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def get_buyer(db: AsyncSession, organization_id: str, buyer_id: str) -> WholesaleBuyer:
    buyer = await db.scalar(
        select(WholesaleBuyer).where(
            WholesaleBuyer.id == buyer_id,
            WholesaleBuyer.organization_id == organization_id,
        )
    )
    if not buyer:
        raise ResourceNotFoundError("Buyer", buyer_id)
    return buyer


async def list_buyers(
    db: AsyncSession,
    organization_id: str,
    *,
    search: str | None = None,
    with_dues: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[WholesaleBuyer], int]:
    filters = [WholesaleBuyer.organization_id == organization_id]
    if search:
        pattern = f"%{search}%"
        filters.append(or_(
            WholesaleBuyer.name.ilike(pattern),
            WholesaleBuyer.business_name.ilike(pattern),
            WholesaleBuyer.mobile.ilike(pattern),
        ))
    if with_dues:
        filters.append(WholesaleBuyer.total_due > 0)

    total = await db.scalar(select(func.count(WholesaleBuyer.id)).where(*filters)) or 0
    result = await db.execute(
        select(WholesaleBuyer)
        .where(*filters)
        .order_by(WholesaleBuyer.name)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total
