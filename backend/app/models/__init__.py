"""Aggregate model imports for Alembic auto-detection."""

from app.models.tenant.organization_settings import OrganizationSettings  # noqa: F401
from app.models.tenant.bill_counter import BillNumberCounter  # noqa: F401
from app.models.tenant.buyer import WholesaleBuyer  # noqa: F401
from app.models.tenant.order import WholesaleOrder  # noqa: F401
from app.models.tenant.stock import ProductStock, StockTransfer  # noqa: F401
from app.models.tenant.monthly_bill import MonthlyBill  # noqa: F401
from app.models.tenant.activity_log import ActivityLog  # noqa: F401
