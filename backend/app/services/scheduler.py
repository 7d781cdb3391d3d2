"""Background task scheduler: daily overdue sweep and monthly bill run.

Uses FastAPI's lifespan context to start/stop an asyncio background loop.
No external dependencies (no Celery, no APScheduler), just a simple
asyncio.sleep loop that fires once per day at the configured hour:

  * every day: bills past their due date are marked ``overdue``
  * on the 1st: last month's draft bill is generated for every buyer of
    every organization that has auto-generation switched on

Each buyer is generated in its own session and transaction, so one
failure never rolls back another buyer's bill.

Configuration (via .env):
    AUTO_BILL_HOUR=2         run at 02:00 UTC
    AUTO_BILL_ENABLED=true   master switch for the monthly run
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone

from fastapi import FastAPI
from sqlalchemy import select

from app.config import settings
from app.database import async_session
from app.middleware.exceptions import ChallanBookException
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.organization_settings import OrganizationSettings
from app.services import billing
from app.services.org_config import load_billing_config

logger = logging.getLogger("challanbook.scheduler")

# Expected outcomes of a sweep, not failures
_SKIP_CODES = ("NO_ORDERS", "DUPLICATE_PERIOD")


async def organization_ids() -> list[str]:
    async with async_session() as db:
        result = await db.execute(select(OrganizationSettings.organization_id))
        return [row[0] for row in result.all()]


async def run_overdue_sweep(today: date | None = None) -> int:
    """Mark overdue bills in every organization. Returns the number flagged."""
    today = today or datetime.now(timezone.utc).date()
    flagged = 0
    for org_id in await organization_ids():
        async with async_session() as db:
            try:
                flagged += len(await billing.mark_overdue_bills(db, org_id, today))
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Overdue sweep failed for organization %s", org_id)
    logger.info("Overdue sweep complete: %d bill(s) flagged", flagged)
    return flagged


async def _generate_for_buyer(
    org_id: str, buyer_id: str, month: str, year: int, today: date,
) -> str:
    """Generate one bill; returns "created", "skipped" or "failed"."""
    async with async_session() as db:
        try:
            bill = await billing.generate_monthly_bill(
                db, org_id, buyer_id, month, year, today=today,
            )
            await db.commit()
            logger.info("Auto-generated %s for buyer %s", bill.bill_number, buyer_id)
            return "created"
        except ChallanBookException as exc:
            await db.rollback()
            if exc.error_code in _SKIP_CODES:
                return "skipped"
            logger.warning(
                "Auto-generation failed for buyer %s: %s (%s)",
                buyer_id, exc.message, exc.error_code,
            )
            return "failed"
        except Exception:
            await db.rollback()
            logger.exception("Auto-generation failed for buyer %s", buyer_id)
            return "failed"


async def generate_bills_for_organization(
    org_id: str, month: str, year: int, today: date | None = None,
) -> dict[str, int]:
    today = today or datetime.now(timezone.utc).date()
    counts = {"created": 0, "skipped": 0, "failed": 0}

    async with async_session() as db:
        config = await load_billing_config(db, org_id)
        if not config.auto_generate:
            logger.info("Auto-generation disabled for organization %s", org_id)
            return counts
        # Persist the default company if it was synthesized just now
        await db.commit()
        result = await db.execute(
            select(WholesaleBuyer.id).where(WholesaleBuyer.organization_id == org_id)
        )
        buyer_ids = [row[0] for row in result.all()]

    for buyer_id in buyer_ids:
        outcome = await _generate_for_buyer(org_id, buyer_id, month, year, today)
        counts[outcome] += 1

    logger.info(
        "Organization %s, %s %d: %d created, %d skipped, %d failed",
        org_id, month, year, counts["created"], counts["skipped"], counts["failed"],
    )
    return counts


async def run_monthly_generation(
    month: str, year: int, today: date | None = None,
) -> dict[str, int]:
    """Generate ``month``/``year`` bills for every organization."""
    totals = {"created": 0, "skipped": 0, "failed": 0}
    for org_id in await organization_ids():
        try:
            counts = await generate_bills_for_organization(org_id, month, year, today)
        except Exception:
            logger.exception("Monthly generation failed for organization %s", org_id)
            continue
        for key, value in counts.items():
            totals[key] += value
    return totals


async def run_daily_jobs(today: date | None = None) -> None:
    today = today or datetime.now(timezone.utc).date()
    await run_overdue_sweep(today)

    if today.day == 1 and settings.auto_bill_enabled:
        month, year = billing.previous_month(today)
        logger.info("Starting monthly bill generation for %s %d", month, year)
        totals = await run_monthly_generation(month, year, today)
        logger.info("Monthly bill generation complete: %s", totals)


async def _scheduler_loop() -> None:
    """Sleep loop that fires the daily jobs once per day at ``auto_bill_hour`` UTC."""
    target_hour = settings.auto_bill_hour

    while True:
        now = datetime.now(timezone.utc)
        next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)

        wait_seconds = (next_run - now).total_seconds()
        logger.info(
            "Next scheduled run at %s (in %.0f seconds)",
            next_run.isoformat(),
            wait_seconds,
        )

        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_jobs()
        except Exception:
            logger.exception("Unhandled error in scheduled jobs")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the scheduler on startup, cancel on shutdown."""
    task = asyncio.create_task(_scheduler_loop())
    logger.info("Billing scheduler started")
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Billing scheduler stopped")
