"""Bill number allocation.

Format: ``PREFIX/FY/NN``, e.g. ``VR/2025-26/07``.

The financial year runs April → March.  Within a year the allocator hands
out the lowest sequence not currently used by any bill of the
organization, so the number of a deleted draft is reissued before a
higher one.

Allocation must run in the same transaction as the bill insert.  The
organization's counter row is selected FOR UPDATE, which serializes
concurrent generations on PostgreSQL; on top of that the unique
(organization_id, bill_number) index rejects a duplicate that slips
through under weaker isolation.
"""

import logging
import re
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tenant.bill_counter import BillNumberCounter
from app.models.tenant.monthly_bill import MonthlyBill

logger = logging.getLogger(__name__)

_SEQ_RE = re.compile(r"/(\d+)$")


def financial_year_for(d: date) -> str:
    """Return the Indian financial year label for a date.

    >>> financial_year_for(date(2026, 3, 31))
    '2025-26'
    >>> financial_year_for(date(2026, 4, 1))
    '2026-27'
    """
    start = d.year if d.month >= 4 else d.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


def parse_sequence(bill_number: str) -> int | None:
    match = _SEQ_RE.search(bill_number or "")
    return int(match.group(1)) if match else None


def format_bill_number(prefix: str, financial_year: str, sequence: int) -> str:
    return f"{prefix}/{financial_year}/{sequence:02d}"


def replace_sequence(bill_number: str, sequence: int) -> str:
    """Swap the trailing digits of ``bill_number`` for ``sequence``."""
    if parse_sequence(bill_number) is None:
        return f"{bill_number}/{sequence:02d}"
    return _SEQ_RE.sub(f"/{sequence:02d}", bill_number)


def lowest_free_sequence(used: list[int]) -> int:
    """First positive integer missing from ``used``."""
    candidate = 1
    for seq in sorted(set(used)):
        if seq < candidate:
            continue
        if seq != candidate:
            break
        candidate += 1
    return candidate


async def _lock_counter(
    db: AsyncSession, organization_id: str, financial_year: str,
) -> BillNumberCounter:
    counter = await db.scalar(
        select(BillNumberCounter)
        .where(BillNumberCounter.organization_id == organization_id)
        .with_for_update()
    )
    if counter is None:
        counter = BillNumberCounter(
            organization_id=organization_id,
            financial_year=financial_year,
            last_sequence=0,
        )
        db.add(counter)
    elif counter.financial_year != financial_year:
        logger.info(
            "Financial year rollover for %s: %s → %s",
            organization_id, counter.financial_year, financial_year,
        )
        counter.financial_year = financial_year
        counter.last_sequence = 0
    return counter


async def next_bill_number(
    db: AsyncSession,
    organization_id: str,
    prefix: str,
    today: date,
) -> tuple[str, str]:
    """Allocate the next bill number.

    Returns:
        (bill_number, financial_year)
    """
    financial_year = financial_year_for(today)
    counter = await _lock_counter(db, organization_id, financial_year)

    result = await db.execute(
        select(MonthlyBill.bill_number).where(
            MonthlyBill.organization_id == organization_id,
            MonthlyBill.financial_year == financial_year,
        )
    )
    used = [
        seq for seq in (parse_sequence(n) for n in result.scalars().all())
        if seq is not None
    ]
    sequence = lowest_free_sequence(used)

    counter.last_sequence = max(sequence, counter.last_sequence or 0)
    await db.flush()

    bill_number = format_bill_number(prefix, financial_year, sequence)
    logger.debug(
        "Allocated bill number %s (used=%d, counter=%d)",
        bill_number, len(used), counter.last_sequence,
    )
    return bill_number, financial_year
