"""Monthly bill lifecycle: generation, customization, finalize/send/delete.

A bill consolidates every challan one buyer received in one calendar
month into a single GST invoice.  Bills are born as ``draft``; while in
draft the company, payment terms, HSN code, notes, bill number and the
challan list can still be changed.  ``finalize_bill`` freezes the bill
(``generated``), after which only payments move it.

Every operation here mutates the bill and then calls
``sync_buyer_ledger`` so the buyer's summary list and running totals
move with it in the same transaction.  Nothing commits here: the caller
(``get_db`` for requests, the scheduler/CLI for sweeps) owns the
transaction.
"""

import calendar
import logging
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.monthly_bill import UNPAID_STATUSES, MonthlyBill
from app.models.tenant.order import WholesaleOrder
from app.services.bill_numbers import next_bill_number, replace_sequence
from app.services.ledger import (
    drop_bill_from_ledger,
    get_buyer_for_bill,
    return_advances,
    sync_buyer_ledger,
    take_advances,
)
from app.services.org_config import BillingConfig, load_billing_config
from app.utils.locks import get_bill_locks
from app.utils.money import money, money_sum

logger = logging.getLogger(__name__)

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


# ── Helpers ─────────────────────────────────────────────────


def month_number(month: str) -> int:
    try:
        return MONTHS.index(month.strip().capitalize()) + 1
    except (ValueError, AttributeError):
        raise BusinessLogicError(
            f"Invalid month: {month}", error_code="INVALID_PERIOD",
        )


def billing_period(month: str, year: int) -> tuple[datetime, datetime]:
    """First instant and last second of ``month``/``year``."""
    if not 2000 <= int(year) <= 2100:
        raise BusinessLogicError(f"Invalid year: {year}", error_code="INVALID_PERIOD")
    m = month_number(month)
    last_day = calendar.monthrange(year, m)[1]
    return (
        datetime(year, m, 1, 0, 0, 0),
        datetime(year, m, last_day, 23, 59, 59),
    )


def previous_month(today: date) -> tuple[str, int]:
    first = today.replace(day=1)
    last = first - timedelta(days=1)
    return MONTHS[last.month - 1], last.year


def company_state_code(company: dict) -> str:
    return (company.get("address") or {}).get("state_code") or settings.default_state_code


def buyer_snapshot(buyer: WholesaleBuyer, company: dict) -> dict:
    return {
        "id": buyer.id,
        "name": buyer.name,
        "business_name": buyer.business_name,
        "mobile": buyer.mobile,
        "email": buyer.email,
        "gstin": buyer.gst_number,
        "pan": buyer.pan,
        "address": buyer.address,
        # Buyers without a state code are treated as local to the seller
        "state_code": buyer.state_code or company_state_code(company),
    }


def challan_snapshot(order: WholesaleOrder, gst_rate: float) -> dict:
    """Split a GST-inclusive challan total into taxable and GST parts."""
    rate = order.gst_percentage if order.gst_percentage is not None else gst_rate
    taxable = order.total_amount / (1 + rate / 100)
    return {
        "challan_id": order.id,
        "challan_number": order.challan_number,
        "challan_date": order.created_at.isoformat(),
        "items_qty": sum(int(i.get("quantity", 0)) for i in order.items or []),
        "taxable_amount": money(taxable),
        "gst_amount": money(order.total_amount - taxable),
        "total_amount": money(order.total_amount),
    }


def imported_payments(order: WholesaleOrder) -> list[dict]:
    """Payments taken on a challan, re-labelled for the bill history."""
    return [
        {
            "amount": money(p.get("amount")),
            "payment_date": p.get("payment_date"),
            "payment_method": p.get("payment_method", "Cash"),
            "notes": f"Payment for challan {order.challan_number}",
            "recorded_by": p.get("recorded_by"),
            "recorded_by_role": p.get("recorded_by_role"),
            "source": "challan_import",
            "challan_id": order.id,
        }
        for p in order.payment_history or []
        if (p.get("amount") or 0) > 0
    ]


def split_gst(total_gst: float, inter_state: bool) -> tuple[float, float, float]:
    """Return (cgst, sgst, igst)."""
    if inter_state:
        return 0.0, 0.0, money(total_gst)
    half = money(total_gst / 2)
    return half, half, 0.0


def refresh_balance(bill: MonthlyBill) -> None:
    bill.grand_total = money(bill.invoice_total + (bill.previous_outstanding or 0))
    bill.balance_due = money(max(0.0, bill.grand_total - (bill.amount_paid or 0)))


def apply_challan_totals(bill: MonthlyBill, challans: list[dict], inter_state: bool) -> None:
    bill.challans = challans
    bill.total_taxable_amount = money_sum(c["taxable_amount"] for c in challans)
    total_gst = money_sum(c["gst_amount"] for c in challans)
    bill.cgst, bill.sgst, bill.igst = split_gst(total_gst, inter_state)
    bill.invoice_total = money_sum(c["total_amount"] for c in challans)
    refresh_balance(bill)


async def get_bill(db: AsyncSession, organization_id: str, bill_id: str) -> MonthlyBill:
    bill = await db.scalar(
        select(MonthlyBill).where(
            MonthlyBill.id == bill_id,
            MonthlyBill.organization_id == organization_id,
        )
    )
    if not bill:
        raise ResourceNotFoundError("Bill", bill_id)
    return bill


async def _resync(db: AsyncSession, bill: MonthlyBill) -> None:
    buyer = await get_buyer_for_bill(db, bill)
    if buyer is not None:
        sync_buyer_ledger(buyer, bill)
    await db.flush()


def _assert_draft(bill: MonthlyBill, fields: set[str]) -> None:
    lock_info = get_bill_locks(bill)
    if not lock_info.is_locked:
        return
    conflict = lock_info.check_update(fields) or next(iter(lock_info.locked_fields.values()))
    raise BusinessLogicError(
        f"{conflict.reason}. {conflict.unlock_hint}", error_code="NOT_DRAFT",
    )


# ── Generation ──────────────────────────────────────────────


async def _previous_outstanding(
    db: AsyncSession, organization_id: str, buyer_id: str, period_start: datetime,
) -> float:
    result = await db.execute(
        select(MonthlyBill.balance_due).where(
            MonthlyBill.organization_id == organization_id,
            MonthlyBill.buyer_id == buyer_id,
            MonthlyBill.status.in_(UNPAID_STATUSES),
            MonthlyBill.period_end < period_start,
        )
    )
    return money_sum(result.scalars().all())


async def generate_monthly_bill(
    db: AsyncSession,
    organization_id: str,
    buyer_id: str,
    month: str,
    year: int,
    company_id: str | None = None,
    today: date | None = None,
    config: BillingConfig | None = None,
) -> MonthlyBill:
    """Create the draft bill for one buyer and month.

    Payments taken on the challans are imported, and any advance the buyer
    holds is applied up to the remaining balance.

    Raises:
        ChallanBookException(SETTINGS_NOT_FOUND): organization not set up
        ResourceNotFoundError: buyer or company unknown
        BusinessLogicError: INVALID_PERIOD, DUPLICATE_PERIOD, NO_ORDERS
    """
    today = today or datetime.utcnow().date()
    period_start, period_end = billing_period(month, year)
    month = MONTHS[period_start.month - 1]

    config = config or await load_billing_config(db, organization_id)
    company = config.company(company_id)

    buyer = await db.scalar(
        select(WholesaleBuyer).where(
            WholesaleBuyer.id == buyer_id,
            WholesaleBuyer.organization_id == organization_id,
        )
    )
    if not buyer:
        raise ResourceNotFoundError("Buyer", buyer_id)

    existing = await db.scalar(
        select(MonthlyBill.bill_number).where(
            MonthlyBill.organization_id == organization_id,
            MonthlyBill.buyer_id == buyer_id,
            MonthlyBill.period_month == month,
            MonthlyBill.period_year == year,
        )
    )
    if existing:
        raise BusinessLogicError(
            f"Bill already exists for {month} {year}: {existing}",
            error_code="DUPLICATE_PERIOD",
        )

    result = await db.execute(
        select(WholesaleOrder)
        .where(
            WholesaleOrder.organization_id == organization_id,
            WholesaleOrder.buyer_id == buyer_id,
            WholesaleOrder.created_at >= period_start,
            WholesaleOrder.created_at <= period_end,
        )
        .order_by(WholesaleOrder.created_at.asc())
    )
    orders = result.scalars().all()
    if not orders:
        raise BusinessLogicError(
            f"No orders found for {buyer.name} in {month} {year}",
            error_code="NO_ORDERS",
        )

    gst_rate = config.gst_rate
    challans = [challan_snapshot(o, gst_rate) for o in orders]
    history = [p for o in orders for p in imported_payments(o)]

    buyer_info = buyer_snapshot(buyer, company)
    inter_state = buyer_info["state_code"] != company_state_code(company)

    bill_number, financial_year = await next_bill_number(
        db, organization_id, config.prefix, today,
    )

    bill = MonthlyBill(
        organization_id=organization_id,
        bill_number=bill_number,
        financial_year=financial_year,
        company=company,
        buyer=buyer_info,
        buyer_id=buyer.id,
        period_month=month,
        period_year=year,
        period_start=period_start,
        period_end=period_end,
        gst_rate=gst_rate,
        previous_outstanding=await _previous_outstanding(
            db, organization_id, buyer.id, period_start,
        ),
        payment_history=history,
        amount_paid=money_sum(p["amount"] for p in history),
        status="draft",
        payment_due_date=period_end + timedelta(days=config.payment_term_days),
        hsn_code=config.hsn_code,
        generated_at=datetime.utcnow(),
    )
    apply_challan_totals(bill, challans, inter_state)
    advances = take_advances(buyer, bill.balance_due)
    if advances:
        bill.payment_history = [*history, *advances]
        bill.amount_paid = money_sum(p["amount"] for p in bill.payment_history)
        refresh_balance(bill)
    db.add(bill)
    await db.flush()

    sync_buyer_ledger(buyer, bill)
    await db.flush()

    logger.info(
        "Generated bill %s for buyer %s (%s %d): %d challans, total=%.2f",
        bill.bill_number, buyer.id, month, year, len(challans), bill.invoice_total,
        extra={"organization_id": organization_id, "bill_id": bill.id},
    )
    return bill


# ── Customization ───────────────────────────────────────────


async def customize_bill(
    db: AsyncSession, organization_id: str, bill_id: str, changes: dict,
) -> MonthlyBill:
    """Apply draft-time edits.

    ``changes`` may carry company_id, payment_term_days, hsn_code, notes
    and remove_challan_ids; keys that are absent are left alone.
    """
    bill = await get_bill(db, organization_id, bill_id)
    _assert_draft(bill, set(changes))

    if changes.get("company_id"):
        config = await load_billing_config(db, organization_id)
        company = config.company(changes["company_id"])
        bill.company = company
        total_gst = money(bill.cgst + bill.sgst + bill.igst)
        inter_state = (bill.buyer or {}).get("state_code") != company_state_code(company)
        bill.cgst, bill.sgst, bill.igst = split_gst(total_gst, inter_state)

    if changes.get("payment_term_days") is not None:
        bill.payment_due_date = bill.period_end + timedelta(
            days=int(changes["payment_term_days"])
        )

    if changes.get("hsn_code"):
        bill.hsn_code = changes["hsn_code"]

    if "notes" in changes:
        bill.notes = changes["notes"]

    remove_ids = set(changes.get("remove_challan_ids") or [])
    if remove_ids:
        _remove_challans(bill, remove_ids)

    await _resync(db, bill)
    logger.info(
        "Customized bill %s: %s", bill.bill_number, sorted(changes),
        extra={"organization_id": organization_id, "bill_id": bill.id},
    )
    return bill


def _remove_challans(bill: MonthlyBill, remove_ids: set[str]) -> None:
    remaining = [c for c in bill.challans or [] if c["challan_id"] not in remove_ids]
    if not remaining:
        raise BusinessLogicError(
            "Cannot remove every challan from a bill; delete the draft instead",
            error_code="NO_CHALLANS_LEFT",
        )
    removed = {c["challan_id"] for c in bill.challans or []} - {
        c["challan_id"] for c in remaining
    }
    if not removed:
        return

    kept_history, dropped = [], []
    for p in bill.payment_history or []:
        if p.get("source") == "challan_import" and p.get("challan_id") in removed:
            dropped.append(p)
        else:
            kept_history.append(p)
    bill.payment_history = kept_history
    bill.amount_paid = money(max(0.0, bill.amount_paid - money_sum(p["amount"] for p in dropped)))

    apply_challan_totals(bill, remaining, inter_state=(bill.igst or 0) > 0)


async def update_bill_number(
    db: AsyncSession, organization_id: str, bill_id: str, sequence: int,
) -> MonthlyBill:
    """Replace the trailing sequence of a draft bill's number.

    A number already held by another bill surfaces as an IntegrityError
    from the unique (organization_id, bill_number) index.
    """
    bill = await get_bill(db, organization_id, bill_id)
    _assert_draft(bill, {"bill_number"})
    if not isinstance(sequence, int) or isinstance(sequence, bool) or sequence <= 0:
        raise BusinessLogicError(
            "Bill sequence must be a positive integer", error_code="INVALID_SEQUENCE",
        )

    old = bill.bill_number
    bill.bill_number = replace_sequence(old, sequence)
    await _resync(db, bill)
    logger.info(
        "Renumbered bill %s → %s", old, bill.bill_number,
        extra={"organization_id": organization_id, "bill_id": bill.id},
    )
    return bill


# ── Lifecycle ───────────────────────────────────────────────


async def finalize_bill(db: AsyncSession, organization_id: str, bill_id: str) -> MonthlyBill:
    bill = await get_bill(db, organization_id, bill_id)
    if bill.status != "draft":
        raise BusinessLogicError(
            f"Bill {bill.bill_number} is already {bill.status}", error_code="NOT_DRAFT",
        )
    bill.status = "generated"
    bill.finalized_at = datetime.utcnow()
    await _resync(db, bill)
    logger.info(
        "Finalized bill %s", bill.bill_number,
        extra={"organization_id": organization_id, "bill_id": bill.id},
    )
    return bill


async def mark_bill_sent(db: AsyncSession, organization_id: str, bill_id: str) -> MonthlyBill:
    """Record delivery to the buyer. Only a ``generated`` bill changes status."""
    bill = await get_bill(db, organization_id, bill_id)
    if bill.status == "draft":
        raise BusinessLogicError(
            "Finalize the bill before sending it", error_code="NOT_FINALIZED",
        )
    if bill.status == "generated":
        bill.status = "sent"
    bill.sent_at = datetime.utcnow()
    await _resync(db, bill)
    return bill


async def delete_bill(db: AsyncSession, organization_id: str, bill_id: str) -> str:
    """Delete a draft. Returns the freed bill number."""
    bill = await get_bill(db, organization_id, bill_id)
    if bill.status != "draft":
        raise BusinessLogicError(
            f"Only draft bills can be deleted; {bill.bill_number} is {bill.status}",
            error_code="NOT_DRAFT",
        )

    buyer = await get_buyer_for_bill(db, bill)
    if buyer is not None:
        drop_bill_from_ledger(buyer, bill.id)
        return_advances(buyer, bill.payment_history or [])

    bill_number = bill.bill_number
    await db.delete(bill)
    await db.flush()
    logger.info(
        "Deleted draft bill %s", bill_number,
        extra={"organization_id": organization_id, "bill_id": bill_id},
    )
    return bill_number


# ── Queries ─────────────────────────────────────────────────


async def list_bills(
    db: AsyncSession,
    organization_id: str,
    *,
    status: str | None = None,
    month: str | None = None,
    year: int | None = None,
    buyer_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MonthlyBill], int]:
    filters = [MonthlyBill.organization_id == organization_id]
    if status:
        filters.append(MonthlyBill.status == status)
    if month:
        filters.append(MonthlyBill.period_month == MONTHS[month_number(month) - 1])
    if year:
        filters.append(MonthlyBill.period_year == year)
    if buyer_id:
        filters.append(MonthlyBill.buyer_id == buyer_id)

    total = await db.scalar(select(func.count(MonthlyBill.id)).where(*filters)) or 0
    result = await db.execute(
        select(MonthlyBill)
        .where(*filters)
        .order_by(MonthlyBill.period_start.desc(), MonthlyBill.bill_number.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def bill_stats(
    db: AsyncSession, organization_id: str, today: date | None = None,
) -> dict:
    """Dashboard figures across all bills of the organization."""
    today = today or datetime.utcnow().date()
    result = await db.execute(
        select(MonthlyBill).where(MonthlyBill.organization_id == organization_id)
    )
    bills = result.scalars().all()

    issued = [b for b in bills if b.status != "draft"]
    this_month = [
        b for b in issued
        if b.period_month == MONTHS[today.month - 1] and b.period_year == today.year
    ]
    return {
        "total_bills": len(bills),
        "draft_bills": sum(1 for b in bills if b.status == "draft"),
        "pending_bills": sum(1 for b in bills if b.status in UNPAID_STATUSES),
        "paid_bills": sum(1 for b in bills if b.status == "paid"),
        "overdue_bills": sum(1 for b in bills if b.status == "overdue"),
        "total_revenue": money_sum(b.invoice_total for b in issued),
        "total_outstanding": money_sum(b.balance_due for b in issued),
        "total_collected": money_sum(b.amount_paid for b in issued),
        "this_month_revenue": money_sum(b.invoice_total for b in this_month),
        "this_month_count": len(this_month),
    }


# ── Overdue sweep ───────────────────────────────────────────


async def mark_overdue_bills(
    db: AsyncSession, organization_id: str, today: date | None = None,
) -> list[str]:
    """Flag unpaid bills past their due date. Returns the bill numbers flagged."""
    today = today or datetime.utcnow().date()
    cutoff = datetime(today.year, today.month, today.day)
    result = await db.execute(
        select(MonthlyBill).where(
            MonthlyBill.organization_id == organization_id,
            MonthlyBill.status.in_(("generated", "sent", "partial")),
            MonthlyBill.payment_due_date < cutoff,
            MonthlyBill.balance_due > 0,
        )
    )
    flagged = []
    for bill in result.scalars().all():
        bill.status = "overdue"
        await _resync(db, bill)
        flagged.append(bill.bill_number)

    if flagged:
        logger.info(
            "Marked %d bill(s) overdue", len(flagged),
            extra={"organization_id": organization_id},
        )
    return flagged
