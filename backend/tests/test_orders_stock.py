"""Tests for challan entry and stock pools."""

from datetime import datetime

import pytest
import pytest_asyncio
from pydantic import ValidationError
from sqlalchemy import select

from app.config import settings
from app.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.stock import ProductStock, StockTransfer
from app.schemas.order import OrderCreate
from app.services import orders, stock
from app.utils.numbering import clean_business_name
from tests.conftest import ORG_ID


def _order_body(**overrides) -> OrderCreate:
    fields = dict(
        buyer_name="Ramesh Shah",
        buyer_contact="+91 98765 43210",
        business_name="Ram Textiles",
        state_code="24",
        items=[
            {"design": "D-101", "color": "Navy", "size": "M", "quantity": 10, "price_per_unit": 100},
        ],
    )
    fields.update(overrides)
    return OrderCreate(**fields)


@pytest_asyncio.fixture
async def stocked(db_session):
    return await stock.upsert_stock(
        db_session, ORG_ID, design="D-101", color="Navy", size="M", quantity=20,
    )


@pytest.mark.unit
class TestPricing:

    def test_price_lines(self):
        lines, subtotal = orders.price_lines([
            {"design": "A", "color": "Red", "size": "S", "quantity": 3, "price_per_unit": 12.5},
            {"design": "B", "color": "Red", "size": "S", "quantity": 2, "price_per_unit": 50},
        ])
        assert lines[0]["subtotal"] == 37.5
        assert subtotal == 137.5

    def test_discounts(self):
        assert orders.discount_for(1000, "percentage", 10) == 100.0
        assert orders.discount_for(1000, "percentage", 150) == 1000.0
        assert orders.discount_for(1000, "fixed", 250) == 250.0
        assert orders.discount_for(1000, "fixed", 5000) == 1000.0
        assert orders.discount_for(1000, "none", 50) == 0.0

    def test_clean_business_name(self):
        assert clean_business_name("Ram Textiles & Co.") == "RAM_TEXTILES_CO"
        assert clean_business_name("  ---  ") == "CHALLAN"

    def test_order_validation(self):
        assert _order_body().buyer_contact == "9876543210"
        with pytest.raises(ValidationError):
            _order_body(items=[])
        with pytest.raises(ValidationError):
            _order_body(buyer_contact="12345")
        with pytest.raises(ValidationError):
            _order_body(discount_type="bogus")
        with pytest.raises(ValidationError):
            _order_body(fulfillment_type="drone")


@pytest.mark.asyncio
class TestCreateOrder:

    async def test_creates_buyer_and_challan(self, db_session, org_settings, stocked):
        order = await orders.create_order(
            db_session, ORG_ID, _order_body(amount_paid=300), created_by="sales@example.com",
        )

        assert order.challan_number == "RAM_TEXTILES_01"
        assert order.subtotal_amount == pytest.approx(1000.0)
        assert order.gst_percentage == 5.0
        assert order.gst_amount == pytest.approx(50.0)
        assert order.total_amount == pytest.approx(1050.0)
        assert order.amount_paid == pytest.approx(300.0)
        assert order.amount_due == pytest.approx(750.0)
        assert order.payment_status == "Partial"
        assert order.payment_history[0]["recorded_by"] == "sales@example.com"

        buyer = await db_session.scalar(select(WholesaleBuyer))
        assert buyer.mobile == "9876543210"
        assert buyer.total_orders == 1
        assert buyer.total_spent == pytest.approx(1050.0)
        assert order.buyer_id == buyer.id
        assert stocked.main_stock == 10

    async def test_reuses_buyer_by_mobile(self, db_session, org_settings, stocked):
        await orders.create_order(db_session, ORG_ID, _order_body())
        second = await orders.create_order(
            db_session, ORG_ID,
            _order_body(buyer_email="ramesh@example.com", items=[
                {"design": "D-101", "color": "Navy", "size": "M", "quantity": 5, "price_per_unit": 100},
            ]),
        )

        buyers = (await db_session.execute(select(WholesaleBuyer))).scalars().all()
        assert len(buyers) == 1
        assert buyers[0].total_orders == 2
        assert buyers[0].email == "ramesh@example.com"
        assert second.challan_number == "RAM_TEXTILES_02"

    async def test_discount_and_gst_disabled(self, db_session, org_settings, stocked):
        order = await orders.create_order(
            db_session, ORG_ID,
            _order_body(discount_type="percentage", discount_value=10, gst_enabled=False),
        )

        assert order.discount_amount == pytest.approx(100.0)
        assert order.taxable_amount == pytest.approx(900.0)
        assert order.gst_percentage == 0.0
        assert order.total_amount == pytest.approx(900.0)
        assert order.payment_status == "Pending"

    async def test_back_dated_challan(self, db_session, org_settings, stocked):
        order = await orders.create_order(
            db_session, ORG_ID, _order_body(order_date=datetime(2026, 3, 20, 11, 0)),
        )
        assert order.created_at == datetime(2026, 3, 20, 11, 0)

    async def test_overpayment_rejected(self, db_session, org_settings, stocked):
        with pytest.raises(BusinessLogicError) as exc:
            await orders.create_order(db_session, ORG_ID, _order_body(amount_paid=2000))
        assert exc.value.error_code == "INVALID_AMOUNT"

    async def test_factory_direct_skips_stock(self, db_session, org_settings):
        order = await orders.create_order(
            db_session, ORG_ID, _order_body(fulfillment_type="factory_direct"),
        )
        assert order.fulfillment_type == "factory_direct"
        assert await db_session.scalar(select(ProductStock)) is None

    async def test_unknown_variant(self, db_session, org_settings):
        with pytest.raises(ResourceNotFoundError):
            await orders.create_order(db_session, ORG_ID, _order_body())


@pytest.mark.asyncio
class TestStockDeduction:

    async def test_borrows_from_reserved(self, db_session, stocked):
        await stock.upsert_stock(
            db_session, ORG_ID, design="D-101", color="Navy", size="M",
            quantity=15, pool="reserved",
        )

        borrows = await stock.deduct_for_order(
            db_session, ORG_ID,
            [
                {"design": "D-101", "color": "Navy", "size": "M", "quantity": 18},
                {"design": "D-101", "color": "Navy", "size": "M", "quantity": 7},
            ],
            order_id="order-1",
            performed_by="sales@example.com",
        )

        assert stocked.main_stock == 0
        assert stocked.reserved_stock == 10
        assert len(borrows) == 1
        assert borrows[0].quantity == 5
        assert borrows[0].transfer_type == "borrow"
        assert borrows[0].from_pool == "reserved"
        assert borrows[0].related_order_id == "order-1"

    async def test_stock_lock_refuses_borrow(self, db_session, stocked, monkeypatch):
        monkeypatch.setattr(settings, "stock_lock_enabled", True)
        await stock.upsert_stock(
            db_session, ORG_ID, design="D-101", color="Navy", size="M",
            quantity=50, pool="reserved",
        )

        with pytest.raises(BusinessLogicError) as exc:
            await stock.deduct_for_order(
                db_session, ORG_ID,
                [{"design": "D-101", "color": "Navy", "size": "M", "quantity": 25}],
                order_id="order-1",
            )
        assert exc.value.error_code == "STOCK_LOCKED"
        assert stocked.main_stock == 20
        assert stocked.reserved_stock == 50

    async def test_insufficient_stock_moves_nothing(self, db_session, stocked):
        await stock.upsert_stock(
            db_session, ORG_ID, design="D-102", color="Red", size="L", quantity=1,
        )

        with pytest.raises(BusinessLogicError) as exc:
            await stock.deduct_for_order(
                db_session, ORG_ID,
                [
                    {"design": "D-101", "color": "Navy", "size": "M", "quantity": 5},
                    {"design": "D-102", "color": "Red", "size": "L", "quantity": 4},
                ],
                order_id="order-1",
            )
        assert exc.value.error_code == "INSUFFICIENT_STOCK"
        assert stocked.main_stock == 20


@pytest.mark.asyncio
class TestStockPools:

    async def test_upsert_adds_to_existing_variant(self, db_session, stocked):
        again = await stock.upsert_stock(
            db_session, ORG_ID, design="D-101", color="Navy", size="M", quantity=5,
        )
        assert again.id == stocked.id
        assert again.main_stock == 25

    async def test_upsert_rejects_bad_input(self, db_session):
        with pytest.raises(BusinessLogicError) as exc:
            await stock.upsert_stock(
                db_session, ORG_ID, design="D", color="C", size="S", quantity=1, pool="attic",
            )
        assert exc.value.error_code == "INVALID_POOL"

        with pytest.raises(BusinessLogicError) as exc:
            await stock.upsert_stock(
                db_session, ORG_ID, design="D", color="C", size="S", quantity=0,
            )
        assert exc.value.error_code == "INVALID_QUANTITY"

    async def test_manual_transfer(self, db_session, stocked):
        transfer = await stock.transfer_stock(
            db_session, ORG_ID, design="D-101", color="Navy", size="M",
            quantity=8, from_pool="main", to_pool="reserved",
            notes="Hold for marketplace", performed_by="admin@example.com",
        )

        assert stocked.main_stock == 12
        assert stocked.reserved_stock == 8
        assert transfer.transfer_type == "manual"

        rows, total = await stock.list_transfers(db_session, ORG_ID)
        assert total == 1
        assert rows[0].id == transfer.id

    async def test_transfer_errors(self, db_session, stocked):
        with pytest.raises(BusinessLogicError) as exc:
            await stock.transfer_stock(
                db_session, ORG_ID, design="D-101", color="Navy", size="M",
                quantity=1, from_pool="main", to_pool="main",
            )
        assert exc.value.error_code == "INVALID_POOL"

        with pytest.raises(BusinessLogicError) as exc:
            await stock.transfer_stock(
                db_session, ORG_ID, design="D-101", color="Navy", size="M",
                quantity=1, from_pool="reserved", to_pool="main",
            )
        assert exc.value.error_code == "INSUFFICIENT_STOCK"

        with pytest.raises(ResourceNotFoundError):
            await stock.transfer_stock(
                db_session, ORG_ID, design="X", color="Y", size="Z",
                quantity=1, from_pool="main", to_pool="reserved",
            )
        assert await db_session.scalar(select(StockTransfer)) is None
