"""Management CLI for billing operations.

Usage:
    python -m app.cli repair-ledgers              # Rebuild every buyer's bill ledger from bill rows
    python -m app.cli generate-bills March 2026   # Run the monthly bill sweep for one period
    python -m app.cli mark-overdue                # Run the overdue sweep now
"""

import asyncio
import sys

from sqlalchemy import select

from app.database import async_session
from app.models.tenant.buyer import WholesaleBuyer
from app.services.ledger import rebuild_buyer_ledger
from app.services.scheduler import run_monthly_generation, run_overdue_sweep


async def repair_ledgers() -> int:
    """Rebuild ``monthly_bills`` and totals for every buyer. Returns buyers changed."""
    changed = 0
    async with async_session() as db:
        result = await db.execute(select(WholesaleBuyer))
        buyers = result.scalars().all()
        for buyer in buyers:
            if await rebuild_buyer_ledger(db, buyer):
                changed += 1
                print(f"  Repaired {buyer.name} ({buyer.mobile})")
        await db.commit()
    print(f"\n{changed} of {len(buyers)} buyer ledger(s) repaired")
    return changed


async def generate_bills(month: str, year: int) -> None:
    totals = await run_monthly_generation(month, year)
    print(
        f"  {month} {year}: {totals['created']} created, "
        f"{totals['skipped']} skipped, {totals['failed']} failed"
    )


async def mark_overdue() -> None:
    flagged = await run_overdue_sweep()
    print(f"  {flagged} bill(s) marked overdue")


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "repair-ledgers":
        asyncio.run(repair_ledgers())
    elif cmd == "generate-bills" and len(argv) == 4 and argv[3].isdigit():
        asyncio.run(generate_bills(argv[2].capitalize(), int(argv[3])))
    elif cmd == "mark-overdue":
        asyncio.run(mark_overdue())
    else:
        print("Usage: python -m app.cli [repair-ledgers|generate-bills <Month> <Year>|mark-overdue]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
