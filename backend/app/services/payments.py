"""Payment reconciliation for bills, challans and buyers.

Three entry points take money in:

  * ``apply_bill_payment``    against one finalized bill
  * ``record_order_payment``  against a challan that has not been billed yet
  * ``record_buyer_payment``  a lump sum from a buyer, spread oldest-first
                              over open bills, else over unbilled challans,
                              with any surplus kept as an advance

and ``delete_bill_payment`` reverses a bill history entry.  Bill payment
entries carry a ``source`` so a reversal knows where the money came from.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.monthly_bill import MonthlyBill
from app.models.tenant.order import WholesaleOrder
from app.services.billing import get_bill
from app.services.ledger import (
    advance_balance,
    get_buyer_for_bill,
    return_advances,
    sync_buyer_ledger,
    take_advances,
)
from app.utils.money import money

logger = logging.getLogger(__name__)


def payment_entry(
    amount: float,
    *,
    payment_method: str = "Cash",
    payment_date: datetime | None = None,
    notes: str | None = None,
    recorded_by: str | None = None,
    recorded_by_role: str | None = None,
    source: str | None = None,
    **extra,
) -> dict:
    entry = {
        "amount": money(amount),
        "payment_date": (payment_date or datetime.utcnow()).isoformat(),
        "payment_method": payment_method,
        "notes": notes,
        "recorded_by": recorded_by,
        "recorded_by_role": recorded_by_role,
    }
    if source:
        entry["source"] = source
    entry.update(extra)
    return entry


def derive_bill_status(bill: MonthlyBill, today: date | None = None) -> str:
    """Status implied by a bill's payment figures after a reversal.

    An overdue bill that still owes money and is still past its due date
    stays overdue.
    """
    if bill.status == "draft":
        return "draft"
    if bill.balance_due <= 0:
        return "paid"
    if bill.status == "overdue" and bill.payment_due_date is not None:
        today = today or datetime.utcnow().date()
        if bill.payment_due_date < datetime(today.year, today.month, today.day):
            return "overdue"
    if bill.amount_paid <= 0:
        return "sent" if bill.sent_at else "generated"
    return "partial"


def derive_order_status(order: WholesaleOrder) -> str:
    if order.amount_due <= 0:
        return "Paid"
    if order.amount_paid > 0:
        return "Partial"
    return "Pending"


def _credit_bill(bill: MonthlyBill, entry: dict) -> None:
    bill.payment_history = [*(bill.payment_history or []), entry]
    bill.amount_paid = money(bill.amount_paid + entry["amount"])
    bill.balance_due = money(max(0.0, bill.grand_total - bill.amount_paid))
    if bill.balance_due <= 0:
        bill.status = "paid"
        bill.paid_at = datetime.utcnow()
    else:
        bill.status = "partial"


def _credit_order(order: WholesaleOrder, entry: dict) -> None:
    order.payment_history = [*(order.payment_history or []), entry]
    order.amount_paid = money(order.amount_paid + entry["amount"])
    order.amount_due = money(max(0.0, order.total_amount - order.amount_paid))
    order.payment_status = derive_order_status(order)


# ── Bill payments ───────────────────────────────────────────


async def apply_bill_payment(
    db: AsyncSession,
    organization_id: str,
    bill_id: str,
    amount: float,
    **details,
) -> MonthlyBill:
    """Record a payment against a finalized bill.

    ``details`` are passed to ``payment_entry`` (method, date, notes,
    recorded_by, recorded_by_role).
    """
    bill = await get_bill(db, organization_id, bill_id)

    if bill.status == "draft":
        raise BusinessLogicError(
            "Finalize the bill before recording payments", error_code="NOT_FINALIZED",
        )
    if bill.status == "paid" or bill.balance_due <= 0:
        raise BusinessLogicError(
            f"Bill {bill.bill_number} is already fully paid", error_code="BILL_FULLY_PAID",
        )
    amount = money(amount)
    if amount <= 0 or amount > bill.balance_due:
        raise BusinessLogicError(
            f"Amount must be between 0.01 and {bill.balance_due:.2f}",
            error_code="INVALID_AMOUNT",
        )

    _credit_bill(bill, payment_entry(amount, source="manual", **details))

    buyer = await get_buyer_for_bill(db, bill)
    if buyer is not None:
        sync_buyer_ledger(buyer, bill)
    await db.flush()

    logger.info(
        "Payment %.2f on bill %s → %s (balance %.2f)",
        amount, bill.bill_number, bill.status, bill.balance_due,
        extra={"organization_id": organization_id, "bill_id": bill.id},
    )
    return bill


async def delete_bill_payment(
    db: AsyncSession,
    organization_id: str,
    bill_id: str,
    index: int,
    today: date | None = None,
) -> tuple[MonthlyBill, dict]:
    """Remove a payment history entry and reverse its amount.

    An applied advance goes back onto the buyer. Returns the bill and the
    removed entry.
    """
    bill = await get_bill(db, organization_id, bill_id)
    history = list(bill.payment_history or [])
    if index < 0 or index >= len(history):
        raise BusinessLogicError(
            f"No payment at index {index}", error_code="INVALID_PAYMENT_INDEX",
        )

    removed = history.pop(index)
    bill.payment_history = history
    bill.amount_paid = money(max(0.0, bill.amount_paid - (removed.get("amount") or 0)))
    bill.balance_due = money(max(0.0, bill.grand_total - bill.amount_paid))
    bill.status = derive_bill_status(bill, today)
    if bill.status != "paid":
        bill.paid_at = None

    buyer = await get_buyer_for_bill(db, bill)
    if buyer is not None:
        return_advances(buyer, [removed])
        sync_buyer_ledger(buyer, bill)
    await db.flush()

    logger.info(
        "Reversed payment %.2f (%s) on bill %s → %s",
        removed.get("amount") or 0, removed.get("source", "manual"),
        bill.bill_number, bill.status,
        extra={"organization_id": organization_id, "bill_id": bill.id},
    )
    return bill, removed


# ── Challan payments ────────────────────────────────────────


async def billed_challan_ids(
    db: AsyncSession, organization_id: str, buyer_id: str,
) -> set[str]:
    result = await db.execute(
        select(MonthlyBill.challans).where(
            MonthlyBill.organization_id == organization_id,
            MonthlyBill.buyer_id == buyer_id,
        )
    )
    return {c["challan_id"] for challans in result.scalars().all() for c in challans or []}


async def get_order(db: AsyncSession, organization_id: str, order_id: str) -> WholesaleOrder:
    order = await db.scalar(
        select(WholesaleOrder).where(
            WholesaleOrder.id == order_id,
            WholesaleOrder.organization_id == organization_id,
        )
    )
    if not order:
        raise ResourceNotFoundError("Order", order_id)
    return order


async def record_order_payment(
    db: AsyncSession,
    organization_id: str,
    order_id: str,
    amount: float,
    **details,
) -> WholesaleOrder:
    """Take a payment on a challan before it has been billed."""
    order = await get_order(db, organization_id, order_id)

    if order.id in await billed_challan_ids(db, organization_id, order.buyer_id):
        raise BusinessLogicError(
            f"Challan {order.challan_number} is already billed; pay against the bill",
            error_code="ORDER_BILLED",
        )
    amount = money(amount)
    if amount <= 0 or amount > order.amount_due:
        raise BusinessLogicError(
            f"Amount must be between 0.01 and {order.amount_due:.2f}",
            error_code="INVALID_AMOUNT",
        )

    _credit_order(order, payment_entry(amount, **details))
    await db.flush()
    return order


# ── Buyer-level payments ────────────────────────────────────


async def record_buyer_payment(
    db: AsyncSession,
    organization_id: str,
    buyer_id: str,
    amount: float,
    **details,
) -> dict:
    """Spread a buyer's payment over what they owe, oldest first.

    Open bills (finalized, balance > 0) are settled first.  Only when the
    buyer has none does the money go to unbilled challans.  Whatever is
    left is stored on the buyer as an advance.

    Advances the buyer already holds are applied to each open bill ahead
    of the new money.
    """
    buyer = await db.scalar(
        select(WholesaleBuyer).where(
            WholesaleBuyer.id == buyer_id,
            WholesaleBuyer.organization_id == organization_id,
        )
    )
    if not buyer:
        raise ResourceNotFoundError("Buyer", buyer_id)

    amount = money(amount)
    if amount <= 0:
        raise BusinessLogicError("Amount must be positive", error_code="INVALID_AMOUNT")

    remaining = amount
    bills_affected: list[dict] = []
    orders_affected: list[dict] = []

    result = await db.execute(
        select(MonthlyBill)
        .where(
            MonthlyBill.organization_id == organization_id,
            MonthlyBill.buyer_id == buyer.id,
            MonthlyBill.status != "draft",
            MonthlyBill.balance_due > 0,
        )
        .order_by(MonthlyBill.period_start.asc())
    )
    open_bills = result.scalars().all()

    advance_applied = 0.0
    if open_bills:
        for bill in open_bills:
            # Held advances settle a bill before the new money does
            for entry in take_advances(buyer, bill.balance_due):
                _credit_bill(bill, entry)
                advance_applied = money(advance_applied + entry["amount"])
            sync_buyer_ledger(buyer, bill)
            if remaining <= 0 or bill.balance_due <= 0:
                continue
            share = min(remaining, bill.balance_due)
            _credit_bill(bill, payment_entry(
                share, source="allocation",
                **{**details, "notes": details.get("notes") or "Buyer payment allocation"},
            ))
            sync_buyer_ledger(buyer, bill)
            remaining = money(remaining - share)
            bills_affected.append({
                "bill_id": bill.id,
                "bill_number": bill.bill_number,
                "amount": share,
                "status": bill.status,
            })
    else:
        billed = await billed_challan_ids(db, organization_id, buyer.id)
        result = await db.execute(
            select(WholesaleOrder)
            .where(
                WholesaleOrder.organization_id == organization_id,
                WholesaleOrder.buyer_id == buyer.id,
                WholesaleOrder.amount_due > 0,
            )
            .order_by(WholesaleOrder.created_at.asc())
        )
        for order in result.scalars().all():
            if remaining <= 0:
                break
            if order.id in billed:
                continue
            share = min(remaining, order.amount_due)
            _credit_order(order, payment_entry(share, **details))
            remaining = money(remaining - share)
            orders_affected.append({
                "order_id": order.id,
                "challan_number": order.challan_number,
                "amount": share,
                "payment_status": order.payment_status,
            })

    if remaining > 0:
        buyer.advance_payments = [
            *(buyer.advance_payments or []),
            payment_entry(remaining, **details),
        ]

    await db.flush()
    logger.info(
        "Buyer payment %.2f for %s: %d bill(s), %d challan(s), advance %.2f (held %.2f applied)",
        amount, buyer.id, len(bills_affected), len(orders_affected),
        remaining, advance_applied,
        extra={"organization_id": organization_id},
    )
    return {
        "buyer_id": buyer.id,
        "amount_received": amount,
        "amount_allocated": money(amount - remaining),
        "advance_amount": remaining,
        "advance_applied": advance_applied,
        "bills_affected": bills_affected,
        "orders_affected": orders_affected,
        "total_due": buyer.total_due,
        "total_advance": advance_balance(buyer),
    }
