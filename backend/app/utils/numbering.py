"""Challan number generation.

Format: ``<BUSINESS>_<NN>`` where BUSINESS is the buyer's business name
upper-cased with punctuation stripped and spaces turned into underscores,
and NN counts that business's challans (zero-padded to 2 digits).

    "Ram Textiles & Co."  →  RAM_TEXTILES_CO_01, RAM_TEXTILES_CO_02, ...
"""

import re

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tenant.order import WholesaleOrder


def clean_business_name(business_name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", business_name)
    cleaned = re.sub(r"\s+", "_", cleaned.strip())
    return cleaned.upper() or "CHALLAN"


async def generate_challan_number(
    db: AsyncSession,
    organization_id: str,
    business_name: str,
) -> str:
    """Generate the next challan number for a business.

    Args:
        db: Database session
        organization_id: Tenant the challan belongs to
        business_name: Buyer business name (falls back to buyer name upstream)

    Returns:
        Generated code string, e.g. "RAM_TEXTILES_07"
    """
    prefix = clean_business_name(business_name)
    count = await db.scalar(
        select(func.count(WholesaleOrder.id)).where(
            WholesaleOrder.organization_id == organization_id,
            WholesaleOrder.business_name == business_name,
        )
    ) or 0

    # Two business names can clean to the same prefix; skip taken numbers
    seq = count + 1
    while True:
        candidate = f"{prefix}_{seq:02d}"
        taken = await db.scalar(
            select(WholesaleOrder.id).where(
                WholesaleOrder.organization_id == organization_id,
                WholesaleOrder.challan_number == candidate,
            )
        )
        if not taken:
            return candidate
        seq += 1
