"""Pytest configuration and fixtures for ChallanBook tests.

Tests run against an in-memory SQLite database (aiosqlite) so they need
no running PostgreSQL.  Each test gets a fresh schema.
"""

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  register every table on Base.metadata
from app.auth.deps import CurrentUser
from app.auth.jwt import create_access_token
from app.auth.permissions import resolve_permissions
from app.database import Base, get_db
from app.main import app
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.order import WholesaleOrder
from app.models.tenant.organization_settings import OrganizationSettings

ORG_ID = "org_vrundavan"
OTHER_ORG_ID = "org_other"


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory database with every table."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def org_settings(db_session: AsyncSession) -> OrganizationSettings:
    """Legacy flat settings (no company list yet)."""
    org = OrganizationSettings(
        organization_id=ORG_ID,
        company_name="Vrundavan Textiles",
        gst_number="24ABCDE1234F1Z5",
        address="12 Ring Road, Surat",
        phone="9825000000",
        gst_percentage=5.0,
    )
    db_session.add(org)
    await db_session.flush()
    return org


def _new_buyer(**overrides) -> WholesaleBuyer:
    fields = dict(
        organization_id=ORG_ID,
        name="Ramesh Shah",
        mobile="9876543210",
        business_name="Ram Textiles",
        state_code="24",
        total_orders=0,
        total_spent=0.0,
        total_due=0.0,
        total_paid=0.0,
        monthly_bills=[],
        advance_payments=[],
    )
    fields.update(overrides)
    return WholesaleBuyer(**fields)


@pytest_asyncio.fixture
async def buyer(db_session: AsyncSession) -> WholesaleBuyer:
    b = _new_buyer()
    db_session.add(b)
    await db_session.flush()
    return b


@pytest.fixture
def make_buyer(db_session: AsyncSession):
    """Factory for extra buyers: ``await make_buyer(mobile=..., state_code=...)``."""
    async def _make(**overrides) -> WholesaleBuyer:
        b = _new_buyer(**overrides)
        db_session.add(b)
        await db_session.flush()
        return b

    return _make


@pytest.fixture
def make_order(db_session: AsyncSession):
    """Factory for challans with a fixed GST-inclusive total.

    ``paid`` is recorded as a single payment taken on the challan.
    """
    counter = {"n": 0}

    async def _make(
        buyer: WholesaleBuyer,
        total: float,
        created_at: datetime,
        paid: float = 0.0,
        gst_percentage: float | None = 5.0,
    ) -> WholesaleOrder:
        counter["n"] += 1
        history = []
        if paid:
            history.append({
                "amount": paid,
                "payment_date": created_at.isoformat(),
                "payment_method": "Cash",
                "notes": "Paid at order",
                "recorded_by": "sales@example.com",
            })
        order = WholesaleOrder(
            organization_id=buyer.organization_id,
            challan_number=f"RAM_TEXTILES_{counter['n']:02d}",
            buyer_id=buyer.id,
            buyer_name=buyer.name,
            buyer_contact=buyer.mobile,
            business_name=buyer.business_name,
            items=[{
                "design": "D-101", "color": "Navy", "size": "M",
                "quantity": 10, "price_per_unit": total / 10, "subtotal": total,
            }],
            subtotal_amount=total,
            gst_enabled=gst_percentage is not None,
            gst_percentage=gst_percentage,
            total_amount=total,
            amount_paid=paid,
            amount_due=total - paid,
            payment_status="Paid" if paid >= total else ("Partial" if paid else "Pending"),
            payment_history=history,
            created_at=created_at,
        )
        db_session.add(order)
        await db_session.flush()
        return order

    return _make


# ── Auth Fixtures ────────────────────────────────────────────────

def _token(role: str, organization_id: str = ORG_ID) -> str:
    return create_access_token(
        user_id=f"user-{role}",
        role=role,
        permissions=resolve_permissions(role),
        organization_id=organization_id,
        email=f"{role}@example.com",
    )


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {_token('admin')}"}


@pytest.fixture
def sales_headers() -> dict:
    return {"Authorization": f"Bearer {_token('sales')}"}


@pytest.fixture
def other_org_headers() -> dict:
    return {"Authorization": f"Bearer {_token('admin', OTHER_ORG_ID)}"}


@pytest.fixture
def admin_user() -> CurrentUser:
    return CurrentUser(
        id="user-admin",
        role="admin",
        organization_id=ORG_ID,
        email="admin@example.com",
        permissions=resolve_permissions("admin"),
    )


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
