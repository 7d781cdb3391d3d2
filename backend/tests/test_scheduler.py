"""Tests for the daily overdue sweep and the monthly bill run."""

from datetime import date, datetime

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.monthly_bill import MonthlyBill
from app.models.tenant.order import WholesaleOrder
from app.models.tenant.organization_settings import OrganizationSettings
from app.services import scheduler
from tests.conftest import ORG_ID

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def session_factory(test_engine, monkeypatch):
    """Point the scheduler at the test database."""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(scheduler, "async_session", factory)
    return factory


async def _seed(factory, *, auto_generate: bool = True, orders_in_march: int = 1) -> None:
    async with factory() as db:
        db.add(OrganizationSettings(
            organization_id=ORG_ID,
            company_name="Vrundavan Textiles",
            gst_percentage=5.0,
            billing_settings={"auto_generate_bills": auto_generate},
        ))
        with_orders = WholesaleBuyer(
            organization_id=ORG_ID, name="Ramesh Shah", mobile="9876543210",
            monthly_bills=[], advance_payments=[],
        )
        idle = WholesaleBuyer(
            organization_id=ORG_ID, name="Idle Buyer", mobile="9876543211",
            monthly_bills=[], advance_payments=[],
        )
        db.add_all([with_orders, idle])
        await db.flush()
        for n in range(orders_in_march):
            db.add(WholesaleOrder(
                organization_id=ORG_ID,
                challan_number=f"RAMESH_SHAH_{n + 1:02d}",
                buyer_id=with_orders.id,
                buyer_name=with_orders.name,
                buyer_contact=with_orders.mobile,
                items=[],
                gst_percentage=5.0,
                total_amount=1050.0,
                amount_due=1050.0,
                payment_history=[],
                created_at=datetime(2026, 3, 10 + n),
            ))
        await db.commit()


@pytest.mark.asyncio
class TestMonthlyGeneration:

    async def test_generates_per_buyer(self, session_factory):
        await _seed(session_factory, orders_in_march=2)

        totals = await scheduler.run_monthly_generation("March", 2026, today=date(2026, 4, 1))

        assert totals == {"created": 1, "skipped": 1, "failed": 0}
        async with session_factory() as db:
            bill = await db.scalar(select(MonthlyBill))
            assert bill.status == "draft"
            assert bill.invoice_total == pytest.approx(2100.0)
            org = await db.scalar(select(OrganizationSettings))
            assert org.companies[0]["id"] == "company1"

    async def test_second_run_skips_existing_bills(self, session_factory):
        await _seed(session_factory)
        await scheduler.run_monthly_generation("March", 2026, today=date(2026, 4, 1))

        totals = await scheduler.run_monthly_generation("March", 2026, today=date(2026, 4, 1))

        assert totals == {"created": 0, "skipped": 2, "failed": 0}

    async def test_respects_auto_generate_flag(self, session_factory):
        await _seed(session_factory, auto_generate=False)

        totals = await scheduler.run_monthly_generation("March", 2026, today=date(2026, 4, 1))

        assert totals == {"created": 0, "skipped": 0, "failed": 0}


@pytest.mark.asyncio
class TestDailyJobs:

    async def test_first_of_month_generates_previous_month(
        self, session_factory, monkeypatch,
    ):
        monkeypatch.setattr(settings, "auto_bill_enabled", True)
        await _seed(session_factory)

        await scheduler.run_daily_jobs(today=date(2026, 4, 1))

        async with session_factory() as db:
            bill = await db.scalar(select(MonthlyBill))
            assert bill.period_month == "March"
            assert bill.period_year == 2026

    async def test_other_days_only_sweep(self, session_factory, monkeypatch):
        monkeypatch.setattr(settings, "auto_bill_enabled", True)
        await _seed(session_factory)

        await scheduler.run_daily_jobs(today=date(2026, 4, 2))

        async with session_factory() as db:
            assert await db.scalar(select(MonthlyBill)) is None

    async def test_overdue_sweep(self, session_factory):
        await _seed(session_factory)
        await scheduler.run_monthly_generation("March", 2026, today=date(2026, 4, 1))
        async with session_factory() as db:
            bill = await db.scalar(select(MonthlyBill))
            bill.status = "generated"
            await db.commit()

        flagged = await scheduler.run_overdue_sweep(today=date(2026, 5, 15))

        assert flagged == 1
        async with session_factory() as db:
            bill = await db.scalar(select(MonthlyBill))
            assert bill.status == "overdue"
