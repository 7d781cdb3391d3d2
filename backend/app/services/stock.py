"""Stock pools, transfers and order deduction.

Wholesale challans draw from the ``main`` pool.  When main runs short the
balance is borrowed from ``reserved`` and written to the transfer log as
a ``borrow``, unless stock lock is on, in which case reserved stock is
off limits and the order is refused.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from app.models.tenant.stock import STOCK_POOLS, ProductStock, StockTransfer

logger = logging.getLogger(__name__)

_POOL_COLUMNS = {"main": "main_stock", "reserved": "reserved_stock"}


def _variant_ref(design: str, color: str, size: str) -> str:
    return f"{design}/{color}/{size}"


def _check_pool(pool: str) -> None:
    if pool not in STOCK_POOLS:
        raise BusinessLogicError(
            f"Unknown stock pool: {pool}", error_code="INVALID_POOL",
        )


async def get_variant(
    db: AsyncSession, organization_id: str, design: str, color: str, size: str,
) -> ProductStock | None:
    return await db.scalar(
        select(ProductStock).where(
            ProductStock.organization_id == organization_id,
            ProductStock.design == design,
            ProductStock.color == color,
            ProductStock.size == size,
        )
    )


async def upsert_stock(
    db: AsyncSession,
    organization_id: str,
    *,
    design: str,
    color: str,
    size: str,
    quantity: int,
    pool: str = "main",
) -> ProductStock:
    """Receive ``quantity`` units into a pool, creating the variant if new."""
    _check_pool(pool)
    if quantity <= 0:
        raise BusinessLogicError("Quantity must be positive", error_code="INVALID_QUANTITY")

    stock = await get_variant(db, organization_id, design, color, size)
    if stock is None:
        stock = ProductStock(
            organization_id=organization_id,
            design=design, color=color, size=size,
            main_stock=0, reserved_stock=0,
        )
        db.add(stock)

    column = _POOL_COLUMNS[pool]
    setattr(stock, column, (getattr(stock, column) or 0) + quantity)
    await db.flush()
    return stock


async def list_stock(
    db: AsyncSession,
    organization_id: str,
    design: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[ProductStock], int]:
    filters = [ProductStock.organization_id == organization_id]
    if design:
        filters.append(ProductStock.design == design)

    total = await db.scalar(select(func.count(ProductStock.id)).where(*filters)) or 0
    result = await db.execute(
        select(ProductStock)
        .where(*filters)
        .order_by(ProductStock.design, ProductStock.color, ProductStock.size)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def transfer_stock(
    db: AsyncSession,
    organization_id: str,
    *,
    design: str,
    color: str,
    size: str,
    quantity: int,
    from_pool: str,
    to_pool: str,
    notes: str | None = None,
    performed_by: str | None = None,
    transfer_type: str = "manual",
    related_order_id: str | None = None,
) -> StockTransfer:
    """Move units between pools and append the transfer record."""
    _check_pool(from_pool)
    _check_pool(to_pool)
    if from_pool == to_pool:
        raise BusinessLogicError(
            "Source and destination pools must differ", error_code="INVALID_POOL",
        )
    if quantity <= 0:
        raise BusinessLogicError("Quantity must be positive", error_code="INVALID_QUANTITY")

    stock = await get_variant(db, organization_id, design, color, size)
    if stock is None:
        raise ResourceNotFoundError("Stock", _variant_ref(design, color, size))

    src, dst = _POOL_COLUMNS[from_pool], _POOL_COLUMNS[to_pool]
    available = getattr(stock, src) or 0
    if available < quantity:
        raise BusinessLogicError(
            f"Only {available} unit(s) in {from_pool} for "
            f"{_variant_ref(design, color, size)}",
            error_code="INSUFFICIENT_STOCK",
        )
    setattr(stock, src, available - quantity)
    setattr(stock, dst, (getattr(stock, dst) or 0) + quantity)

    transfer = StockTransfer(
        organization_id=organization_id,
        stock_id=stock.id,
        design=design, color=color, size=size,
        quantity=quantity,
        from_pool=from_pool,
        to_pool=to_pool,
        transfer_type=transfer_type,
        related_order_id=related_order_id,
        notes=notes,
        performed_by=performed_by,
    )
    db.add(transfer)
    await db.flush()
    return transfer


async def list_transfers(
    db: AsyncSession,
    organization_id: str,
    transfer_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockTransfer], int]:
    filters = [StockTransfer.organization_id == organization_id]
    if transfer_type:
        filters.append(StockTransfer.transfer_type == transfer_type)

    total = await db.scalar(select(func.count(StockTransfer.id)).where(*filters)) or 0
    result = await db.execute(
        select(StockTransfer)
        .where(*filters)
        .order_by(StockTransfer.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def deduct_for_order(
    db: AsyncSession,
    organization_id: str,
    items: list[dict],
    order_id: str,
    performed_by: str | None = None,
) -> list[StockTransfer]:
    """Take an order's quantities out of stock.

    All lines are checked before anything moves, so a failing line leaves
    every pool untouched.  Returns the borrow transfers written.
    """
    wanted: dict[tuple[str, str, str], int] = {}
    for item in items:
        key = (item["design"], item["color"], item["size"])
        wanted[key] = wanted.get(key, 0) + int(item["quantity"])

    plan = []
    for (design, color, size), qty in wanted.items():
        stock = await get_variant(db, organization_id, design, color, size)
        if stock is None:
            raise ResourceNotFoundError("Stock", _variant_ref(design, color, size))

        from_main = min(qty, max(0, stock.main_stock or 0))
        shortfall = qty - from_main
        if shortfall > 0:
            if settings.stock_lock_enabled:
                raise BusinessLogicError(
                    f"Main stock short by {shortfall} for "
                    f"{_variant_ref(design, color, size)} and reserved stock is locked",
                    error_code="STOCK_LOCKED",
                )
            if (stock.reserved_stock or 0) < shortfall:
                raise BusinessLogicError(
                    f"Insufficient stock for {_variant_ref(design, color, size)}: "
                    f"requested {qty}, available "
                    f"{(stock.main_stock or 0) + (stock.reserved_stock or 0)}",
                    error_code="INSUFFICIENT_STOCK",
                )
        plan.append((stock, from_main, shortfall))

    borrows = []
    for stock, from_main, shortfall in plan:
        stock.main_stock = (stock.main_stock or 0) - from_main
        if shortfall > 0:
            stock.reserved_stock -= shortfall
            transfer = StockTransfer(
                organization_id=organization_id,
                stock_id=stock.id,
                design=stock.design, color=stock.color, size=stock.size,
                quantity=shortfall,
                from_pool="reserved",
                to_pool="main",
                transfer_type="borrow",
                related_order_id=order_id,
                notes="Borrowed from reserved for wholesale order",
                performed_by=performed_by,
            )
            db.add(transfer)
            borrows.append(transfer)
            logger.info(
                "Borrowed %d from reserved for %s",
                shortfall, _variant_ref(stock.design, stock.color, stock.size),
                extra={"organization_id": organization_id, "order_id": order_id},
            )

    await db.flush()
    return borrows
