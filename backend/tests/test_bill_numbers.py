"""Tests for bill number formatting and allocation."""

from datetime import date, datetime

import pytest
from sqlalchemy import select

from app.models.tenant.bill_counter import BillNumberCounter
from app.services.bill_numbers import (
    financial_year_for,
    format_bill_number,
    lowest_free_sequence,
    next_bill_number,
    parse_sequence,
    replace_sequence,
)
from app.services.billing import delete_bill, generate_monthly_bill
from tests.conftest import ORG_ID


@pytest.mark.unit
class TestFinancialYear:

    def test_march_belongs_to_previous_year(self):
        assert financial_year_for(date(2026, 3, 15)) == "2025-26"

    def test_april_starts_new_year(self):
        assert financial_year_for(date(2026, 4, 1)) == "2026-27"

    def test_century_rollover(self):
        assert financial_year_for(date(2099, 12, 1)) == "2099-00"


@pytest.mark.unit
class TestBillNumberFormat:

    def test_format_pads_to_two_digits(self):
        assert format_bill_number("VR", "2025-26", 7) == "VR/2025-26/07"

    def test_format_keeps_wider_sequences(self):
        assert format_bill_number("VR", "2025-26", 123) == "VR/2025-26/123"

    def test_parse_sequence(self):
        assert parse_sequence("VR/2025-26/07") == 7
        assert parse_sequence("VR/2025-26/123") == 123
        assert parse_sequence("VR-2025") is None

    def test_replace_sequence(self):
        assert replace_sequence("VR/2025-26/07", 12) == "VR/2025-26/12"

    def test_lowest_free_sequence(self):
        assert lowest_free_sequence([]) == 1
        assert lowest_free_sequence([1, 2, 3]) == 4
        assert lowest_free_sequence([1, 3, 4]) == 2
        assert lowest_free_sequence([2, 3]) == 1
        assert lowest_free_sequence([3, 1, 1, 2]) == 4


@pytest.mark.asyncio
class TestAllocator:

    async def test_first_number_of_year(self, db_session):
        number, fy = await next_bill_number(db_session, ORG_ID, "VR", date(2026, 4, 2))

        assert number == "VR/2026-27/01"
        assert fy == "2026-27"
        counter = await db_session.scalar(select(BillNumberCounter))
        assert counter.last_sequence == 1
        assert counter.financial_year == "2026-27"

    async def test_counter_resets_on_new_financial_year(self, db_session):
        db_session.add(BillNumberCounter(
            organization_id=ORG_ID, financial_year="2025-26", last_sequence=41,
        ))
        await db_session.flush()

        number, _ = await next_bill_number(db_session, ORG_ID, "VR", date(2026, 4, 2))

        assert number == "VR/2026-27/01"
        counter = await db_session.scalar(select(BillNumberCounter))
        assert counter.last_sequence == 1

    async def test_deleted_draft_number_is_reused(
        self, db_session, org_settings, make_buyer, make_order,
    ):
        today = date(2026, 4, 2)
        bills = []
        for i in range(3):
            b = await make_buyer(name=f"Buyer {i}", mobile=f"98765000{i:02d}")
            await make_order(b, 1050.0, datetime(2026, 3, 10))
            bills.append(
                await generate_monthly_bill(db_session, ORG_ID, b.id, "March", 2026, today=today)
            )
        assert [b.bill_number for b in bills] == [
            "VR/2026-27/01", "VR/2026-27/02", "VR/2026-27/03",
        ]

        await delete_bill(db_session, ORG_ID, bills[1].id)

        late = await make_buyer(name="Late Buyer", mobile="9876500099")
        await make_order(late, 1050.0, datetime(2026, 3, 20))
        reused = await generate_monthly_bill(
            db_session, ORG_ID, late.id, "March", 2026, today=today,
        )
        assert reused.bill_number == "VR/2026-27/02"

        counter = await db_session.scalar(select(BillNumberCounter))
        assert counter.last_sequence == 3

    async def test_other_organizations_do_not_share_sequences(self, db_session):
        first, _ = await next_bill_number(db_session, ORG_ID, "VR", date(2026, 5, 1))
        other, _ = await next_bill_number(db_session, "org_other", "AB", date(2026, 5, 1))

        assert first == "VR/2026-27/01"
        assert other == "AB/2026-27/01"
