"""Monthly bill endpoints.

Endpoints:
    GET    /api/bills                         List bills (filterable, paginated)
    GET    /api/bills/stats                   Dashboard figures
    POST   /api/bills/generate                Generate a draft bill for a buyer + month
    POST   /api/bills/mark-overdue            Flag unpaid bills past their due date
    GET    /api/bills/{id}                    Bill detail
    PUT    /api/bills/{id}/customize          Edit a draft (company, terms, challans, ...)
    PUT    /api/bills/{id}/bill-number        Change a draft's sequence number
    POST   /api/bills/{id}/finalize           draft → generated
    POST   /api/bills/{id}/send               Record that the bill went to the buyer
    POST   /api/bills/{id}/payments           Record a payment
    DELETE /api/bills/{id}/payments/{index}   Reverse a payment (admin only)
    DELETE /api/bills/{id}                    Delete a draft
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import CurrentUser, get_current_org, require_permission, require_role
from app.database import get_db
from app.models.tenant.monthly_bill import MonthlyBill
from app.schemas.bill import (
    BillCustomize,
    BillDeleted,
    BillGenerateRequest,
    BillNumberUpdate,
    BillOut,
    BillStats,
    BillSummary,
    OverdueSweepResult,
    PaymentDeleted,
)
from app.schemas.common import PaginatedResponse, PaymentCreate, PaymentEntry
from app.services import billing, payments
from app.utils.activity import log_activity

router = APIRouter()


def _summary(bill: MonthlyBill) -> BillSummary:
    buyer = bill.buyer or {}
    return BillSummary(
        id=bill.id,
        bill_number=bill.bill_number,
        financial_year=bill.financial_year,
        buyer_id=bill.buyer_id,
        buyer_name=buyer.get("name"),
        business_name=buyer.get("business_name"),
        period_month=bill.period_month,
        period_year=bill.period_year,
        invoice_total=bill.invoice_total,
        grand_total=bill.grand_total,
        amount_paid=bill.amount_paid,
        balance_due=bill.balance_due,
        status=bill.status,
        payment_due_date=bill.payment_due_date,
        generated_at=bill.generated_at,
    )


def _buyer_label(bill: MonthlyBill) -> str:
    buyer = bill.buyer or {}
    return buyer.get("business_name") or buyer.get("name") or bill.buyer_id


# ── GET /api/bills ───────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[BillSummary])
async def list_bills(
    status_filter: str | None = Query(None, alias="status"),
    month: str | None = Query(None),
    year: int | None = Query(None),
    buyer_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("bills.read")),
):
    bills, total = await billing.list_bills(
        db, org_id,
        status=status_filter, month=month, year=year, buyer_id=buyer_id,
        limit=limit, offset=offset,
    )
    return PaginatedResponse(
        items=[_summary(b) for b in bills], total=total, limit=limit, offset=offset,
    )


# ── GET /api/bills/stats ─────────────────────────────────────

@router.get("/stats", response_model=BillStats)
async def bill_stats(
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("bills.read")),
):
    return BillStats(**await billing.bill_stats(db, org_id))


# ── POST /api/bills/generate ─────────────────────────────────

@router.post("/generate", response_model=BillOut, status_code=status.HTTP_201_CREATED)
async def generate_bill(
    body: BillGenerateRequest,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.write")),
):
    """Generate a draft bill from the buyer's challans for one month."""
    bill = await billing.generate_monthly_bill(
        db, org_id, body.buyer_id, body.month, body.year, company_id=body.company_id,
    )

    await log_activity(
        db, user,
        action="generated",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=(
            f"Generated {bill.bill_number} for {_buyer_label(bill)} "
            f"({bill.period_month} {bill.period_year}), ₹{bill.invoice_total:.2f}"
        ),
        details={"challans": len(bill.challans), "invoice_total": bill.invoice_total},
    )
    return BillOut.model_validate(bill)


# ── POST /api/bills/mark-overdue ─────────────────────────────

@router.post("/mark-overdue", response_model=OverdueSweepResult)
async def mark_overdue(
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.write")),
):
    flagged = await billing.mark_overdue_bills(db, org_id)
    if flagged:
        await log_activity(
            db, user,
            action="marked_overdue",
            entity_type="bill",
            summary=f"Marked {len(flagged)} bill(s) overdue",
            details={"bill_numbers": flagged},
        )
    return OverdueSweepResult(count=len(flagged), bill_numbers=flagged)


# ── GET /api/bills/{bill_id} ─────────────────────────────────

@router.get("/{bill_id}", response_model=BillOut)
async def get_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("bills.read")),
):
    bill = await billing.get_bill(db, org_id, bill_id)
    return BillOut.model_validate(bill)


# ── PUT /api/bills/{bill_id}/customize ───────────────────────

@router.put("/{bill_id}/customize", response_model=BillOut)
async def customize_bill(
    bill_id: str,
    body: BillCustomize,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.write")),
):
    changes = body.model_dump(exclude_unset=True)
    bill = await billing.customize_bill(db, org_id, bill_id, changes)

    await log_activity(
        db, user,
        action="updated",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=f"Customized {bill.bill_number}",
        details={"changed": sorted(changes)},
    )
    return BillOut.model_validate(bill)


# ── PUT /api/bills/{bill_id}/bill-number ─────────────────────

@router.put("/{bill_id}/bill-number", response_model=BillOut)
async def update_bill_number(
    bill_id: str,
    body: BillNumberUpdate,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.write")),
):
    bill = await billing.update_bill_number(db, org_id, bill_id, body.sequence)

    await log_activity(
        db, user,
        action="renumbered",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=f"Renumbered bill to {bill.bill_number}",
    )
    return BillOut.model_validate(bill)


# ── POST /api/bills/{bill_id}/finalize ───────────────────────

@router.post("/{bill_id}/finalize", response_model=BillOut)
async def finalize_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.write")),
):
    bill = await billing.finalize_bill(db, org_id, bill_id)

    await log_activity(
        db, user,
        action="finalized",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=f"Finalized {bill.bill_number} for {_buyer_label(bill)}",
    )
    return BillOut.model_validate(bill)


# ── POST /api/bills/{bill_id}/send ───────────────────────────

@router.post("/{bill_id}/send", response_model=BillOut)
async def send_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.write")),
):
    bill = await billing.mark_bill_sent(db, org_id, bill_id)

    await log_activity(
        db, user,
        action="sent",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=f"Sent {bill.bill_number} to {_buyer_label(bill)}",
    )
    return BillOut.model_validate(bill)


# ── POST /api/bills/{bill_id}/payments ───────────────────────

@router.post("/{bill_id}/payments", response_model=BillOut)
async def record_payment(
    bill_id: str,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("payments.write")),
):
    bill = await payments.apply_bill_payment(
        db, org_id, bill_id, body.amount,
        payment_method=body.payment_method,
        payment_date=body.payment_date,
        notes=body.notes,
        recorded_by=user.display_name,
        recorded_by_role=user.role,
    )

    await log_activity(
        db, user,
        action="payment_recorded",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=f"Recorded ₹{body.amount:.2f} on {bill.bill_number} ({bill.status})",
        details={"amount": body.amount, "balance_due": bill.balance_due},
    )
    return BillOut.model_validate(bill)


# ── DELETE /api/bills/{bill_id}/payments/{index} ─────────────

@router.delete("/{bill_id}/payments/{index}", response_model=PaymentDeleted)
async def delete_payment(
    bill_id: str,
    index: int,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("payments.delete")),
    _admin: CurrentUser = Depends(require_role("admin")),
):
    bill, removed = await payments.delete_bill_payment(db, org_id, bill_id, index)

    await log_activity(
        db, user,
        action="payment_deleted",
        entity_type="bill",
        entity_id=bill.id,
        entity_code=bill.bill_number,
        summary=f"Reversed ₹{removed.get('amount', 0):.2f} on {bill.bill_number}",
        details={"index": index, "payment": removed},
    )
    return PaymentDeleted(
        bill=BillOut.model_validate(bill),
        removed_payment=PaymentEntry(**removed),
    )


# ── DELETE /api/bills/{bill_id} ──────────────────────────────

@router.delete("/{bill_id}", response_model=BillDeleted)
async def delete_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("bills.delete")),
):
    bill_number = await billing.delete_bill(db, org_id, bill_id)

    await log_activity(
        db, user,
        action="deleted",
        entity_type="bill",
        entity_id=bill_id,
        entity_code=bill_number,
        summary=f"Deleted draft {bill_number}",
    )
    return BillDeleted(bill_number=bill_number)
