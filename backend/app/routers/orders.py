"""Wholesale challan endpoints.

Endpoints:
    POST /api/orders                  Create a challan (deducts stock)
    GET  /api/orders                  List challans
    GET  /api/orders/{id}             Challan detail
    POST /api/orders/{id}/payments    Payment on a challan that is not yet billed
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import CurrentUser, get_current_org, require_permission
from app.database import get_db
from app.schemas.common import PaginatedResponse, PaymentCreate
from app.schemas.order import OrderCreate, OrderOut
from app.services import orders as order_service
from app.services import payments
from app.utils.activity import log_activity

router = APIRouter()


# ── POST /api/orders ─────────────────────────────────────────

@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("orders.write")),
):
    order = await order_service.create_order(db, org_id, body, created_by=user.display_name)

    await log_activity(
        db, user,
        action="created",
        entity_type="order",
        entity_id=order.id,
        entity_code=order.challan_number,
        summary=(
            f"Created challan {order.challan_number} for {order.buyer_name}, "
            f"₹{order.total_amount:.2f}"
        ),
        details={"items": len(order.items), "amount_paid": order.amount_paid},
    )
    return OrderOut.model_validate(order)


# ── GET /api/orders ──────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[OrderOut])
async def list_orders(
    buyer_id: str | None = Query(None),
    payment_status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("orders.read")),
):
    orders, total = await order_service.list_orders(
        db, org_id,
        buyer_id=buyer_id, payment_status=payment_status, limit=limit, offset=offset,
    )
    return PaginatedResponse(
        items=[OrderOut.model_validate(o) for o in orders],
        total=total, limit=limit, offset=offset,
    )


# ── GET /api/orders/{order_id} ───────────────────────────────

@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("orders.read")),
):
    order = await payments.get_order(db, org_id, order_id)
    return OrderOut.model_validate(order)


# ── POST /api/orders/{order_id}/payments ─────────────────────

@router.post("/{order_id}/payments", response_model=OrderOut)
async def record_order_payment(
    order_id: str,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("payments.write")),
):
    order = await payments.record_order_payment(
        db, org_id, order_id, body.amount,
        payment_method=body.payment_method,
        payment_date=body.payment_date,
        notes=body.notes,
        recorded_by=user.display_name,
        recorded_by_role=user.role,
    )

    await log_activity(
        db, user,
        action="payment_recorded",
        entity_type="order",
        entity_id=order.id,
        entity_code=order.challan_number,
        summary=f"Recorded ₹{body.amount:.2f} on challan {order.challan_number}",
        details={"amount": body.amount, "amount_due": order.amount_due},
    )
    return OrderOut.model_validate(order)
