"""Wholesale buyer endpoints.

Endpoints:
    GET  /api/buyers                  List buyers (search, only-with-dues)
    GET  /api/buyers/{id}             Buyer detail with bill ledger and advances
    POST /api/buyers/{id}/payments    Lump-sum payment spread over dues
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import CurrentUser, get_current_org, require_permission
from app.database import get_db
from app.schemas.buyer import BuyerDetail, BuyerPaymentResult, BuyerSummary
from app.schemas.common import PaginatedResponse, PaymentCreate
from app.services import orders as order_service
from app.services import payments
from app.utils.activity import log_activity

router = APIRouter()


@router.get("", response_model=PaginatedResponse[BuyerSummary])
async def list_buyers(
    search: str | None = Query(None),
    with_dues: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("buyers.read")),
):
    buyers, total = await order_service.list_buyers(
        db, org_id, search=search, with_dues=with_dues, limit=limit, offset=offset,
    )
    return PaginatedResponse(
        items=[BuyerSummary.model_validate(b) for b in buyers],
        total=total, limit=limit, offset=offset,
    )


@router.get("/{buyer_id}", response_model=BuyerDetail)
async def get_buyer(
    buyer_id: str,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("buyers.read")),
):
    buyer = await order_service.get_buyer(db, org_id, buyer_id)
    return BuyerDetail.model_validate(buyer)


@router.post("/{buyer_id}/payments", response_model=BuyerPaymentResult)
async def record_buyer_payment(
    buyer_id: str,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("payments.write")),
):
    """Allocate a payment oldest-first across open bills, else unbilled challans."""
    result = await payments.record_buyer_payment(
        db, org_id, buyer_id, body.amount,
        payment_method=body.payment_method,
        payment_date=body.payment_date,
        notes=body.notes,
        recorded_by=user.display_name,
        recorded_by_role=user.role,
    )

    await log_activity(
        db, user,
        action="payment_recorded",
        entity_type="buyer",
        entity_id=buyer_id,
        summary=(
            f"Received ₹{result['amount_received']:.2f}: "
            f"{len(result['bills_affected'])} bill(s), "
            f"{len(result['orders_affected'])} challan(s), "
            f"₹{result['advance_amount']:.2f} advance"
        ),
        details={
            "bills": [b["bill_number"] for b in result["bills_affected"]],
            "orders": [o["challan_number"] for o in result["orders_affected"]],
        },
    )
    return BuyerPaymentResult(**result)
