"""Buyer ledger bookkeeping.

A buyer's ``monthly_bills`` mirrors the financial state of every bill it
has received; ``total_due`` and ``total_paid`` are pure reductions over
that list.  Every bill or payment operation ends with
``sync_buyer_ledger`` so the invariants

    total_due  == Σ monthly_bills[].balance_due
    total_paid == Σ monthly_bills[].amount_paid

hold when the transaction commits.  ``rebuild_buyer_ledger`` regenerates
the summaries from the bill rows themselves and backs the
``repair-ledgers`` CLI command.

Money a buyer pays when nothing is open waits in ``advance_payments``
until a bill can absorb it (``take_advances``).
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.monthly_bill import MonthlyBill
from app.utils.money import money, money_sum

logger = logging.getLogger(__name__)


def bill_summary(bill: MonthlyBill) -> dict:
    """Buyer-side summary row for a bill."""
    return {
        "bill_id": bill.id,
        "bill_number": bill.bill_number,
        "month": bill.period_month,
        "year": bill.period_year,
        "invoice_total": bill.invoice_total,
        "amount_paid": bill.amount_paid,
        "balance_due": bill.balance_due,
        "status": bill.status,
        "generated_at": (bill.generated_at.isoformat() if bill.generated_at else None),
    }


def recompute_totals(buyer: WholesaleBuyer) -> None:
    summaries = buyer.monthly_bills or []
    buyer.total_due = money_sum(s["balance_due"] for s in summaries)
    buyer.total_paid = money_sum(s["amount_paid"] for s in summaries)


def sync_buyer_ledger(buyer: WholesaleBuyer, bill: MonthlyBill) -> None:
    """Insert or overwrite ``bill``'s summary on the buyer and recompute totals.

    The list is rebuilt (not mutated in place) so the JSON column is
    flagged dirty.
    """
    summaries = list(buyer.monthly_bills or [])
    row = bill_summary(bill)
    for i, existing in enumerate(summaries):
        if existing["bill_id"] == bill.id:
            summaries[i] = row
            break
    else:
        summaries.append(row)
    buyer.monthly_bills = summaries
    recompute_totals(buyer)


def drop_bill_from_ledger(buyer: WholesaleBuyer, bill_id: str) -> None:
    buyer.monthly_bills = [
        s for s in (buyer.monthly_bills or []) if s["bill_id"] != bill_id
    ]
    recompute_totals(buyer)


# ── Advances ────────────────────────────────────────────────


def advance_balance(buyer: WholesaleBuyer) -> float:
    return money_sum(p.get("amount") or 0 for p in buyer.advance_payments or [])


def take_advances(buyer: WholesaleBuyer, limit: float) -> list[dict]:
    """Draw up to ``limit`` from the buyer's advances, oldest first.

    Returns bill history entries tagged ``source="advance"``.  A partly used
    advance stays on the buyer with what is left of it.
    """
    remaining = money(limit)
    taken, kept = [], []
    for p in buyer.advance_payments or []:
        amount = money(p.get("amount") or 0)
        if remaining <= 0 or amount <= 0:
            kept.append(p)
            continue
        share = min(remaining, amount)
        taken.append({
            **p,
            "amount": share,
            "notes": p.get("notes") or "Advance applied",
            "source": "advance",
        })
        if share < amount:
            kept.append({**p, "amount": money(amount - share)})
        remaining = money(remaining - share)

    if taken:
        buyer.advance_payments = kept
    return taken


def return_advances(buyer: WholesaleBuyer, entries: list[dict]) -> float:
    """Put ``source="advance"`` bill entries back on the buyer. Returns the sum."""
    restored = [
        {k: v for k, v in e.items() if k != "source"}
        for e in entries
        if e.get("source") == "advance" and (e.get("amount") or 0) > 0
    ]
    if restored:
        buyer.advance_payments = [*(buyer.advance_payments or []), *restored]
    return money_sum(e["amount"] for e in restored)


async def get_buyer_for_bill(db: AsyncSession, bill: MonthlyBill) -> WholesaleBuyer | None:
    return await db.scalar(
        select(WholesaleBuyer).where(
            WholesaleBuyer.id == bill.buyer_id,
            WholesaleBuyer.organization_id == bill.organization_id,
        )
    )


async def rebuild_buyer_ledger(db: AsyncSession, buyer: WholesaleBuyer) -> bool:
    """Regenerate a buyer's summaries from its bill rows.

    Returns True when the stored ledger was out of step.
    """
    result = await db.execute(
        select(MonthlyBill)
        .where(
            MonthlyBill.organization_id == buyer.organization_id,
            MonthlyBill.buyer_id == buyer.id,
        )
        .order_by(MonthlyBill.period_start.asc())
    )
    summaries = [bill_summary(b) for b in result.scalars().all()]

    before = (buyer.monthly_bills or [], buyer.total_due, buyer.total_paid)
    buyer.monthly_bills = summaries
    recompute_totals(buyer)
    changed = before != (buyer.monthly_bills, buyer.total_due, buyer.total_paid)
    if changed:
        logger.info(
            "Rebuilt ledger for buyer %s: due=%.2f paid=%.2f",
            buyer.id, buyer.total_due, buyer.total_paid,
        )
    return changed
