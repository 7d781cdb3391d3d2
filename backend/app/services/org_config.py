"""Organization billing configuration.

Resolves the seller companies and billing defaults for an organization.
Organizations created before multi-company billing only carry the flat
``company_name`` / ``gst_number`` / ``address`` fields; the first bill
generation synthesizes ``company1`` from them and stores it, together
with default billing settings (migration on read).
"""

import logging
from dataclasses import dataclass

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.middleware.exceptions import ChallanBookException, ResourceNotFoundError
from app.models.tenant.organization_settings import OrganizationSettings

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_ID = "company1"


@dataclass
class BillingConfig:
    org_settings: OrganizationSettings
    companies: list[dict]
    billing: dict

    @property
    def gst_rate(self) -> float:
        return float(
            self.billing.get("gst_rate")
            or self.org_settings.gst_percentage
            or settings.default_gst_rate
        )

    @property
    def prefix(self) -> str:
        return self.billing.get("bill_number_prefix") or settings.default_bill_prefix

    @property
    def hsn_code(self) -> str:
        return self.billing.get("hsn_code") or settings.default_hsn_code

    @property
    def payment_term_days(self) -> int:
        return int(self.billing.get("payment_term_days") or settings.default_payment_term_days)

    @property
    def auto_generate(self) -> bool:
        return self.billing.get("auto_generate_bills", True) is not False

    def company(self, company_id: str | None = None) -> dict:
        """Pick a company: explicit id → configured default → ``company1``."""
        wanted = company_id or self.billing.get("default_company_id") or DEFAULT_COMPANY_ID
        for company in self.companies:
            if company.get("id") == wanted:
                return company
        raise ResourceNotFoundError("Company", wanted)


def default_company(org: OrganizationSettings) -> dict:
    name = org.company_name or "My Company"
    return {
        "id": DEFAULT_COMPANY_ID,
        "name": name,
        "legal_name": name,
        "gstin": org.gst_number or "",
        "pan": "",
        "address": {
            "line1": org.address or "",
            "line2": "",
            "city": "",
            "state": "Gujarat",
            "pincode": "",
            "state_code": settings.default_state_code,
        },
        "contact": {"phone": org.phone or "", "email": org.email or ""},
        "bank": {"name": "", "account_no": "", "ifsc": "", "branch": ""},
        "is_default": True,
        "is_active": True,
    }


def default_billing_settings(org: OrganizationSettings) -> dict:
    return {
        "auto_generate_bills": True,
        "payment_term_days": settings.default_payment_term_days,
        "default_company_id": DEFAULT_COMPANY_ID,
        "hsn_code": settings.default_hsn_code,
        "gst_rate": org.gst_percentage or settings.default_gst_rate,
        "bill_number_prefix": settings.default_bill_prefix,
    }


async def get_org_settings(
    db: AsyncSession, organization_id: str,
) -> OrganizationSettings | None:
    return await db.scalar(
        select(OrganizationSettings).where(
            OrganizationSettings.organization_id == organization_id
        )
    )


async def load_billing_config(db: AsyncSession, organization_id: str) -> BillingConfig:
    """Load companies and billing settings, migrating legacy settings if needed.

    Raises:
        ChallanBookException(SETTINGS_NOT_FOUND, 404) when the organization has
        never saved its settings.
    """
    org = await get_org_settings(db, organization_id)
    if org is None:
        raise ChallanBookException(
            "Settings not found. Please configure company details first.",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="SETTINGS_NOT_FOUND",
        )

    companies = list(org.companies or [])
    billing = dict(org.billing_settings or {})

    if not companies:
        companies = [default_company(org)]
        org.companies = companies
        if not billing:
            billing = default_billing_settings(org)
            org.billing_settings = billing
        await db.flush()
        logger.info(
            "Created default company from legacy settings",
            extra={"organization_id": organization_id, "company": companies[0]["name"]},
        )

    return BillingConfig(org_settings=org, companies=companies, billing=billing)


async def current_gst_rate(db: AsyncSession, organization_id: str) -> float:
    """GST rate for new challans; falls back to the configured default."""
    org = await get_org_settings(db, organization_id)
    if org is None:
        return settings.default_gst_rate
    billing = org.billing_settings or {}
    return float(billing.get("gst_rate") or org.gst_percentage or settings.default_gst_rate)
