"""Tests for bill, challan and buyer-level payments."""

from datetime import date, datetime

import pytest

from app.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from app.services import billing, payments
from tests.conftest import ORG_ID

TODAY = date(2026, 4, 2)


async def _finalized_bill(db_session, buyer, month="March"):
    bill = await billing.generate_monthly_bill(
        db_session, ORG_ID, buyer.id, month, 2026, today=TODAY,
    )
    return await billing.finalize_bill(db_session, ORG_ID, bill.id)


@pytest.mark.unit
class TestStatusDerivation:

    def test_order_status(self):
        class _Order:
            amount_due = 0.0
            amount_paid = 100.0

        order = _Order()
        assert payments.derive_order_status(order) == "Paid"
        order.amount_due = 50.0
        assert payments.derive_order_status(order) == "Partial"
        order.amount_paid = 0.0
        assert payments.derive_order_status(order) == "Pending"

    def test_payment_entry_rounds_and_tags(self):
        entry = payments.payment_entry(
            99.995, payment_method="UPI", source="manual", recorded_by="a@b.c",
        )
        assert entry["amount"] == 100.0
        assert entry["payment_method"] == "UPI"
        assert entry["source"] == "manual"
        assert entry["payment_date"]


@pytest.mark.asyncio
class TestBillPayments:

    async def test_partial_payment(self, db_session, org_settings, buyer, make_order):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)

        bill = await payments.apply_bill_payment(
            db_session, ORG_ID, bill.id, 4000.0,
            payment_method="Bank Transfer", recorded_by="admin@example.com",
        )

        assert bill.status == "partial"
        assert bill.amount_paid == pytest.approx(4000.0)
        assert bill.balance_due == pytest.approx(6000.0)
        assert bill.payment_history[-1]["source"] == "manual"
        assert bill.payment_history[-1]["payment_method"] == "Bank Transfer"
        assert buyer.total_due == pytest.approx(6000.0)
        assert buyer.total_paid == pytest.approx(4000.0)

    async def test_full_payment_marks_paid(self, db_session, org_settings, buyer, make_order):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)

        bill = await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 10000.0)

        assert bill.status == "paid"
        assert bill.paid_at is not None
        assert bill.balance_due == 0
        assert buyer.total_due == 0

        with pytest.raises(BusinessLogicError) as exc:
            await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 1.0)
        assert exc.value.error_code == "BILL_FULLY_PAID"

    async def test_draft_rejects_payment(self, db_session, org_settings, buyer, make_order):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "March", 2026, today=TODAY,
        )

        with pytest.raises(BusinessLogicError) as exc:
            await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 100.0)
        assert exc.value.error_code == "NOT_FINALIZED"

    @pytest.mark.parametrize("amount", [0.0, -5.0, 10000.01])
    async def test_invalid_amount(self, db_session, org_settings, buyer, make_order, amount):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)

        with pytest.raises(BusinessLogicError) as exc:
            await payments.apply_bill_payment(db_session, ORG_ID, bill.id, amount)
        assert exc.value.error_code == "INVALID_AMOUNT"
        assert bill.amount_paid == 0

    async def test_delete_payment_restores_bill(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)
        await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 4000.0)

        bill, removed = await payments.delete_bill_payment(db_session, ORG_ID, bill.id, 0)

        assert removed["amount"] == pytest.approx(4000.0)
        assert bill.status == "generated"
        assert bill.amount_paid == 0
        assert bill.balance_due == pytest.approx(10000.0)
        assert bill.payment_history == []
        assert buyer.total_due == pytest.approx(10000.0)
        assert buyer.total_paid == 0

    async def test_delete_payment_on_sent_bill(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)
        await billing.mark_bill_sent(db_session, ORG_ID, bill.id)
        await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 10000.0)
        assert bill.status == "paid"

        bill, _ = await payments.delete_bill_payment(db_session, ORG_ID, bill.id, 0)

        assert bill.status == "sent"
        assert bill.paid_at is None

    async def test_delete_imported_challan_payment(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12), paid=3000.0)
        bill = await _finalized_bill(db_session, buyer)
        await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 2000.0)
        assert bill.amount_paid == pytest.approx(5000.0)

        bill, removed = await payments.delete_bill_payment(db_session, ORG_ID, bill.id, 0)

        assert removed["source"] == "challan_import"
        assert bill.amount_paid == pytest.approx(2000.0)
        assert bill.balance_due == pytest.approx(8000.0)
        assert bill.status == "partial"
        assert len(bill.payment_history) == 1

    @pytest.mark.parametrize("index", [-1, 1, 5])
    async def test_invalid_payment_index(
        self, db_session, org_settings, buyer, make_order, index,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)
        await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 100.0)

        with pytest.raises(BusinessLogicError) as exc:
            await payments.delete_bill_payment(db_session, ORG_ID, bill.id, index)
        assert exc.value.error_code == "INVALID_PAYMENT_INDEX"

    async def test_overdue_bill_accepts_payment(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)
        await billing.mark_overdue_bills(db_session, ORG_ID, date(2026, 6, 1))
        assert bill.status == "overdue"

        bill = await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 1000.0)

        assert bill.status == "partial"
        # The next sweep flags it again while money is still owed
        await billing.mark_overdue_bills(db_session, ORG_ID, date(2026, 6, 2))
        assert bill.status == "overdue"

    async def test_reversal_keeps_overdue_bill_overdue(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)
        await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 1000.0)
        await billing.mark_overdue_bills(db_session, ORG_ID, date(2026, 6, 1))
        assert bill.status == "overdue"

        bill, _ = await payments.delete_bill_payment(
            db_session, ORG_ID, bill.id, 0, today=date(2026, 6, 1),
        )

        assert bill.status == "overdue"
        assert bill.balance_due == pytest.approx(10000.0)
        assert buyer.monthly_bills[0]["status"] == "overdue"

    async def test_reversal_before_due_date_clears_overdue(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 10000.0, datetime(2026, 3, 12))
        bill = await _finalized_bill(db_session, buyer)
        await payments.apply_bill_payment(db_session, ORG_ID, bill.id, 1000.0)
        bill.status = "overdue"

        # Due date is 30 April
        bill, _ = await payments.delete_bill_payment(
            db_session, ORG_ID, bill.id, 0, today=date(2026, 4, 15),
        )

        assert bill.status == "generated"


@pytest.mark.asyncio
class TestOrderPayments:

    async def test_payment_on_unbilled_challan(
        self, db_session, org_settings, buyer, make_order,
    ):
        order = await make_order(buyer, 2000.0, datetime(2026, 4, 5))

        order = await payments.record_order_payment(
            db_session, ORG_ID, order.id, 500.0, payment_method="UPI",
        )

        assert order.amount_paid == pytest.approx(500.0)
        assert order.amount_due == pytest.approx(1500.0)
        assert order.payment_status == "Partial"
        assert order.payment_history[-1]["payment_method"] == "UPI"

        order = await payments.record_order_payment(db_session, ORG_ID, order.id, 1500.0)
        assert order.payment_status == "Paid"

    async def test_overpayment_rejected(self, db_session, org_settings, buyer, make_order):
        order = await make_order(buyer, 2000.0, datetime(2026, 4, 5))

        with pytest.raises(BusinessLogicError) as exc:
            await payments.record_order_payment(db_session, ORG_ID, order.id, 2500.0)
        assert exc.value.error_code == "INVALID_AMOUNT"

    async def test_billed_challan_rejected(self, db_session, org_settings, buyer, make_order):
        order = await make_order(buyer, 2000.0, datetime(2026, 3, 5))
        await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "March", 2026, today=TODAY,
        )

        with pytest.raises(BusinessLogicError) as exc:
            await payments.record_order_payment(db_session, ORG_ID, order.id, 100.0)
        assert exc.value.error_code == "ORDER_BILLED"

    async def test_unknown_order(self, db_session, org_settings):
        with pytest.raises(ResourceNotFoundError):
            await payments.record_order_payment(db_session, ORG_ID, "nope", 100.0)


@pytest.mark.asyncio
class TestBuyerPayments:

    async def test_allocates_oldest_bill_first(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 3000.0, datetime(2026, 2, 10))
        await make_order(buyer, 5000.0, datetime(2026, 3, 10))
        february = await _finalized_bill(db_session, buyer, month="February")
        march = await _finalized_bill(db_session, buyer, month="March")
        # March carries February's 3000 forward
        assert march.balance_due == pytest.approx(8000.0)

        result = await payments.record_buyer_payment(
            db_session, ORG_ID, buyer.id, 4000.0, payment_method="Cheque",
        )

        assert february.status == "paid"
        assert february.balance_due == 0
        assert march.amount_paid == pytest.approx(1000.0)
        assert march.status == "partial"
        assert [b["bill_id"] for b in result["bills_affected"]] == [february.id, march.id]
        assert [b["amount"] for b in result["bills_affected"]] == [3000.0, 1000.0]
        assert result["amount_allocated"] == pytest.approx(4000.0)
        assert result["advance_amount"] == 0
        assert march.payment_history[-1]["source"] == "allocation"
        assert result["total_due"] == pytest.approx(buyer.total_due)

    async def test_surplus_becomes_advance(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 1000.0, datetime(2026, 3, 10))
        bill = await _finalized_bill(db_session, buyer)

        result = await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 1500.0)

        assert bill.status == "paid"
        assert result["advance_amount"] == pytest.approx(500.0)
        assert result["total_advance"] == pytest.approx(500.0)
        assert len(buyer.advance_payments) == 1
        assert buyer.total_due == 0

    async def test_falls_back_to_unbilled_challans(
        self, db_session, org_settings, buyer, make_order,
    ):
        first = await make_order(buyer, 1000.0, datetime(2026, 4, 3))
        second = await make_order(buyer, 2000.0, datetime(2026, 4, 8))

        result = await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 1500.0)

        assert first.payment_status == "Paid"
        assert second.amount_paid == pytest.approx(500.0)
        assert second.payment_status == "Partial"
        assert [o["order_id"] for o in result["orders_affected"]] == [first.id, second.id]
        assert result["bills_affected"] == []
        assert result["advance_amount"] == 0

    async def test_draft_bills_are_skipped(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 1000.0, datetime(2026, 3, 10))
        await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "March", 2026, today=TODAY,
        )

        result = await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 300.0)

        # The only challan sits on a draft bill, so nothing can be allocated
        assert result["bills_affected"] == []
        assert result["orders_affected"] == []
        assert result["advance_amount"] == pytest.approx(300.0)

    async def test_non_positive_amount(self, db_session, org_settings, buyer):
        with pytest.raises(BusinessLogicError) as exc:
            await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 0)
        assert exc.value.error_code == "INVALID_AMOUNT"

    async def test_ledger_invariant_holds(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 3000.0, datetime(2026, 2, 10), paid=500.0)
        await make_order(buyer, 5000.0, datetime(2026, 3, 10))
        await _finalized_bill(db_session, buyer, month="February")
        await _finalized_bill(db_session, buyer, month="March")
        await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 1200.0)

        assert buyer.total_due == pytest.approx(
            sum(s["balance_due"] for s in buyer.monthly_bills)
        )
        assert buyer.total_paid == pytest.approx(
            sum(s["amount_paid"] for s in buyer.monthly_bills)
        )


@pytest.mark.asyncio
class TestBuyerAdvances:

    async def test_next_bill_consumes_advance(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 1050.0, datetime(2026, 3, 10))
        march = await _finalized_bill(db_session, buyer)
        result = await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 1100.0)
        assert march.status == "paid"
        assert result["advance_amount"] == pytest.approx(50.0)

        await make_order(buyer, 1050.0, datetime(2026, 4, 10))
        april = await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "April", 2026, today=date(2026, 5, 2),
        )

        assert april.amount_paid == pytest.approx(50.0)
        assert april.balance_due == pytest.approx(1000.0)
        assert april.payment_history[-1]["source"] == "advance"
        assert april.payment_history[-1]["amount"] == pytest.approx(50.0)
        assert buyer.advance_payments == []
        assert buyer.total_due == pytest.approx(1000.0)
        assert buyer.total_due == pytest.approx(
            sum(s["balance_due"] for s in buyer.monthly_bills)
        )

    async def test_large_advance_is_drawn_down(
        self, db_session, org_settings, buyer, make_order,
    ):
        await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 2000.0)
        await make_order(buyer, 1050.0, datetime(2026, 3, 10))

        bill = await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "March", 2026, today=TODAY,
        )

        assert bill.balance_due == 0
        assert bill.amount_paid == pytest.approx(1050.0)
        assert [p["amount"] for p in buyer.advance_payments] == [950.0]

        # Deleting the draft hands the applied advance back
        await billing.delete_bill(db_session, ORG_ID, bill.id)
        assert sum(p["amount"] for p in buyer.advance_payments) == pytest.approx(2000.0)
        assert buyer.total_due == 0

    async def test_buyer_payment_applies_held_advance_first(
        self, db_session, org_settings, buyer, make_order,
    ):
        await make_order(buyer, 1000.0, datetime(2026, 3, 10))
        draft = await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "March", 2026, today=TODAY,
        )
        # Nothing is open while the bill is a draft
        held = await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 300.0)
        assert held["advance_amount"] == pytest.approx(300.0)
        bill = await billing.finalize_bill(db_session, ORG_ID, draft.id)

        result = await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 200.0)

        assert result["advance_applied"] == pytest.approx(300.0)
        assert [b["amount"] for b in result["bills_affected"]] == [200.0]
        assert result["total_advance"] == 0
        assert bill.amount_paid == pytest.approx(500.0)
        assert bill.balance_due == pytest.approx(500.0)
        assert [p["source"] for p in bill.payment_history] == ["advance", "allocation"]
        assert buyer.advance_payments == []
        assert buyer.total_due == pytest.approx(500.0)

    async def test_reversing_applied_advance_returns_it(
        self, db_session, org_settings, buyer, make_order,
    ):
        await payments.record_buyer_payment(db_session, ORG_ID, buyer.id, 50.0)
        await make_order(buyer, 1050.0, datetime(2026, 3, 10))
        bill = await billing.generate_monthly_bill(
            db_session, ORG_ID, buyer.id, "March", 2026, today=TODAY,
        )
        assert bill.balance_due == pytest.approx(1000.0)

        bill, removed = await payments.delete_bill_payment(db_session, ORG_ID, bill.id, 0)

        assert removed["source"] == "advance"
        assert bill.balance_due == pytest.approx(1050.0)
        assert [p["amount"] for p in buyer.advance_payments] == [50.0]
        assert "source" not in buyer.advance_payments[0]
