"""Organization-scoped models.

Every table carries ``organization_id``; queries always filter on it.
"""

# ── Setup / config models ────────────────────────────────────
from app.models.tenant.organization_settings import OrganizationSettings
from app.models.tenant.bill_counter import BillNumberCounter

# ── Core operational models ──────────────────────────────────
from app.models.tenant.buyer import WholesaleBuyer
from app.models.tenant.order import WholesaleOrder
from app.models.tenant.stock import ProductStock, StockTransfer

# ── Financial models ─────────────────────────────────────────
from app.models.tenant.monthly_bill import MonthlyBill

# ── Audit ────────────────────────────────────────────────────
from app.models.tenant.activity_log import ActivityLog

__all__ = [
    # Setup / config
    "OrganizationSettings", "BillNumberCounter",
    # Core operational
    "WholesaleBuyer", "WholesaleOrder", "ProductStock", "StockTransfer",
    # Financial
    "MonthlyBill",
    # Audit
    "ActivityLog",
]
