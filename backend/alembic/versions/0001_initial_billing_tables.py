"""Initial schema: settings, buyers, challans, stock, monthly bills, activity.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Setup / config tables ────────────────────────────────

    op.create_table(
        "organization_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("company_name", sa.String(255)),
        sa.Column("gst_number", sa.String(20)),
        sa.Column("address", sa.Text()),
        sa.Column("phone", sa.String(20)),
        sa.Column("email", sa.String(255)),
        sa.Column("gst_percentage", sa.Float()),
        sa.Column("companies", sa.JSON()),
        sa.Column("billing_settings", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_organization_settings_organization_id", "organization_settings",
        ["organization_id"], unique=True,
    )

    op.create_table(
        "bill_number_counters",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("financial_year", sa.String(7), nullable=False),
        sa.Column("last_sequence", sa.Integer(), server_default="0"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_bill_number_counters_organization_id", "bill_number_counters",
        ["organization_id"], unique=True,
    )

    # ── Buyers and challans ──────────────────────────────────

    op.create_table(
        "wholesale_buyers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("mobile", sa.String(15), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("business_name", sa.String(255)),
        sa.Column("gst_number", sa.String(20)),
        sa.Column("pan", sa.String(10)),
        sa.Column("address", sa.Text()),
        sa.Column("state_code", sa.String(2)),
        sa.Column("credit_limit", sa.Float(), server_default="0"),
        sa.Column("total_orders", sa.Integer(), server_default="0"),
        sa.Column("total_spent", sa.Float(), server_default="0"),
        sa.Column("total_due", sa.Float(), server_default="0"),
        sa.Column("total_paid", sa.Float(), server_default="0"),
        sa.Column("last_order_date", sa.DateTime()),
        sa.Column("monthly_bills", sa.JSON(), server_default="[]"),
        sa.Column("advance_payments", sa.JSON(), server_default="[]"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("organization_id", "mobile", name="uq_buyer_org_mobile"),
    )
    op.create_index(
        "ix_wholesale_buyers_organization_id", "wholesale_buyers", ["organization_id"],
    )

    op.create_table(
        "wholesale_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("challan_number", sa.String(100), nullable=False),
        sa.Column("buyer_id", sa.String(36), sa.ForeignKey("wholesale_buyers.id"), nullable=False),
        sa.Column("buyer_name", sa.String(255), nullable=False),
        sa.Column("buyer_contact", sa.String(15), nullable=False),
        sa.Column("business_name", sa.String(255)),
        sa.Column("gst_number", sa.String(20)),
        sa.Column("fulfillment_type", sa.String(20), server_default="warehouse"),
        sa.Column("items", sa.JSON(), server_default="[]"),
        sa.Column("subtotal_amount", sa.Float(), server_default="0"),
        sa.Column("discount_type", sa.String(20), server_default="none"),
        sa.Column("discount_value", sa.Float(), server_default="0"),
        sa.Column("discount_amount", sa.Float(), server_default="0"),
        sa.Column("gst_enabled", sa.Boolean(), server_default="true"),
        sa.Column("gst_percentage", sa.Float()),
        sa.Column("taxable_amount", sa.Float(), server_default="0"),
        sa.Column("gst_amount", sa.Float(), server_default="0"),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), server_default="0"),
        sa.Column("amount_due", sa.Float(), nullable=False),
        sa.Column("payment_status", sa.String(20), server_default="Pending"),
        sa.Column("payment_history", sa.JSON(), server_default="[]"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("organization_id", "challan_number", name="uq_order_org_challan"),
    )
    op.create_index(
        "ix_wholesale_orders_organization_id", "wholesale_orders", ["organization_id"],
    )
    op.create_index("ix_wholesale_orders_buyer_id", "wholesale_orders", ["buyer_id"])
    op.create_index("ix_wholesale_orders_created_at", "wholesale_orders", ["created_at"])

    # ── Stock ────────────────────────────────────────────────

    op.create_table(
        "product_stock",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("design", sa.String(100), nullable=False),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column("size", sa.String(10), nullable=False),
        sa.Column("main_stock", sa.Integer(), server_default="0"),
        sa.Column("reserved_stock", sa.Integer(), server_default="0"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "organization_id", "design", "color", "size", name="uq_stock_variant",
        ),
    )
    op.create_index(
        "ix_product_stock_organization_id", "product_stock", ["organization_id"],
    )

    op.create_table(
        "stock_transfers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("stock_id", sa.String(36), sa.ForeignKey("product_stock.id"), nullable=False),
        sa.Column("design", sa.String(100), nullable=False),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column("size", sa.String(10), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("from_pool", sa.String(10), nullable=False),
        sa.Column("to_pool", sa.String(10), nullable=False),
        sa.Column("transfer_type", sa.String(20), server_default="manual"),
        sa.Column("related_order_id", sa.String(36)),
        sa.Column("notes", sa.Text()),
        sa.Column("performed_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_stock_transfers_organization_id", "stock_transfers", ["organization_id"],
    )
    op.create_index("ix_stock_transfers_stock_id", "stock_transfers", ["stock_id"])
    op.create_index("ix_stock_transfers_created_at", "stock_transfers", ["created_at"])

    # ── Monthly bills ────────────────────────────────────────

    op.create_table(
        "monthly_bills",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("bill_number", sa.String(50), nullable=False),
        sa.Column("financial_year", sa.String(7), nullable=False),
        sa.Column("company", sa.JSON(), nullable=False),
        sa.Column("buyer", sa.JSON(), nullable=False),
        sa.Column("buyer_id", sa.String(36), sa.ForeignKey("wholesale_buyers.id"), nullable=False),
        sa.Column("period_month", sa.String(10), nullable=False),
        sa.Column("period_year", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.DateTime(), nullable=False),
        sa.Column("period_end", sa.DateTime(), nullable=False),
        sa.Column("challans", sa.JSON(), server_default="[]"),
        sa.Column("total_taxable_amount", sa.Float(), server_default="0"),
        sa.Column("cgst", sa.Float(), server_default="0"),
        sa.Column("sgst", sa.Float(), server_default="0"),
        sa.Column("igst", sa.Float(), server_default="0"),
        sa.Column("gst_rate", sa.Float(), server_default="5"),
        sa.Column("invoice_total", sa.Float(), nullable=False),
        sa.Column("previous_outstanding", sa.Float(), server_default="0"),
        sa.Column("grand_total", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), server_default="0"),
        sa.Column("balance_due", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), server_default="draft"),
        sa.Column("payment_history", sa.JSON(), server_default="[]"),
        sa.Column("payment_due_date", sa.DateTime()),
        sa.Column("hsn_code", sa.String(10), server_default="6203"),
        sa.Column("notes", sa.Text()),
        sa.Column("generated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("finalized_at", sa.DateTime()),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("paid_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("organization_id", "bill_number", name="uq_bill_org_number"),
        sa.UniqueConstraint(
            "organization_id", "buyer_id", "period_month", "period_year",
            name="uq_bill_org_buyer_period",
        ),
    )
    op.create_index("ix_monthly_bills_organization_id", "monthly_bills", ["organization_id"])
    op.create_index("ix_monthly_bills_bill_number", "monthly_bills", ["bill_number"])
    op.create_index("ix_monthly_bills_financial_year", "monthly_bills", ["financial_year"])
    op.create_index("ix_monthly_bills_buyer_id", "monthly_bills", ["buyer_id"])
    op.create_index("ix_monthly_bills_status", "monthly_bills", ["status"])

    # ── Audit ────────────────────────────────────────────────

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_organization_id", "activity_logs", ["organization_id"])
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("monthly_bills")
    op.drop_table("stock_transfers")
    op.drop_table("product_stock")
    op.drop_table("wholesale_orders")
    op.drop_table("wholesale_buyers")
    op.drop_table("bill_number_counters")
    op.drop_table("organization_settings")
