"""Stock pool endpoints.

Endpoints:
    GET  /api/stock              List variants with main/reserved quantities
    POST /api/stock              Receive stock into a pool
    POST /api/stock/transfers    Move units between main and reserved
    GET  /api/stock/transfers    Transfer history (manual moves and borrows)
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import CurrentUser, get_current_org, require_permission
from app.database import get_db
from app.schemas.common import PaginatedResponse
from app.schemas.stock import StockOut, StockReceive, TransferCreate, TransferOut
from app.services import stock as stock_service
from app.utils.activity import log_activity

router = APIRouter()


@router.get("", response_model=PaginatedResponse[StockOut])
async def list_stock(
    design: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("stock.read")),
):
    rows, total = await stock_service.list_stock(
        db, org_id, design=design, limit=limit, offset=offset,
    )
    return PaginatedResponse(
        items=[StockOut.model_validate(s) for s in rows],
        total=total, limit=limit, offset=offset,
    )


@router.post("", response_model=StockOut, status_code=status.HTTP_201_CREATED)
async def receive_stock(
    body: StockReceive,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("stock.write")),
):
    stock = await stock_service.upsert_stock(db, org_id, **body.model_dump())

    await log_activity(
        db, user,
        action="received",
        entity_type="stock",
        entity_id=stock.id,
        entity_code=f"{stock.design}/{stock.color}/{stock.size}",
        summary=f"Received {body.quantity} into {body.pool}",
    )
    return StockOut.model_validate(stock)


@router.post("/transfers", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    body: TransferCreate,
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    user: CurrentUser = Depends(require_permission("stock.write")),
):
    transfer = await stock_service.transfer_stock(
        db, org_id, **body.model_dump(), performed_by=user.display_name,
    )

    await log_activity(
        db, user,
        action="transferred",
        entity_type="stock",
        entity_id=transfer.stock_id,
        entity_code=f"{transfer.design}/{transfer.color}/{transfer.size}",
        summary=f"Moved {transfer.quantity} {transfer.from_pool} → {transfer.to_pool}",
    )
    return TransferOut.model_validate(transfer)


@router.get("/transfers", response_model=PaginatedResponse[TransferOut])
async def list_transfers(
    transfer_type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    org_id: str = Depends(get_current_org),
    _user: CurrentUser = Depends(require_permission("stock.read")),
):
    rows, total = await stock_service.list_transfers(
        db, org_id, transfer_type=transfer_type, limit=limit, offset=offset,
    )
    return PaginatedResponse(
        items=[TransferOut.model_validate(t) for t in rows],
        total=total, limit=limit, offset=offset,
    )
