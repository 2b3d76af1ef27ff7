"""Billing schema - users, plans, provider customers, subscriptions, payments

Revision ID: 001_billing
Revises:
Create Date: 2026-10-19

Tables:
- users (Firebase Auth sync)
- plans (catalog)
- stripe_customers / asaas_customers (one per user per provider)
- subscriptions (canonical record, one PENDING/ACTIVE per user)
- stripe_subscriptions / asaas_subscriptions (provider caches, share the id)
- asaas_payments (PIX charges)
"""
from alembic import op
import sqlalchemy as sa

revision = "001_billing"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    # ── users ──
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("firebase_uid", sa.String(128), unique=True, nullable=False, index=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("name", sa.String(255)),
        sa.Column("phone", sa.String(30)),
        sa.Column("cpf_cnpj", sa.String(20)),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
    )

    # ── plans ──
    op.create_table(
        "plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("interval", sa.String(10), nullable=False, server_default="month"),
        sa.Column("stripe_price_id", sa.String(255)),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
    )

    # ── provider customers ──
    op.create_table(
        "stripe_customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("stripe_customer_id", sa.String(255), unique=True, nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "asaas_customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("asaas_customer_id", sa.String(255), unique=True, nullable=False),
        *_timestamps(),
    )

    # ── subscriptions ──
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id"), nullable=False, index=True),
        sa.Column("provider", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("price_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("interval", sa.String(10), nullable=False, server_default="month"),
        sa.Column("current_period_end", sa.DateTime(timezone=True)),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
    )
    op.create_index(
        "uq_subscriptions_user_open",
        "subscriptions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'ACTIVE')"),
    )

    op.create_table(
        "stripe_subscriptions",
        sa.Column("id", sa.Integer(), sa.ForeignKey("subscriptions.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("stripe_customers.id"), nullable=False, index=True),
        sa.Column("checkout_session_id", sa.String(255), index=True),
        sa.Column("checkout_url", sa.Text()),
        sa.Column("stripe_subscription_id", sa.String(255), unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("current_period_end", sa.DateTime(timezone=True)),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
    )

    op.create_table(
        "asaas_subscriptions",
        sa.Column("id", sa.Integer(), sa.ForeignKey("subscriptions.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("asaas_customers.id"), nullable=False, index=True),
        sa.Column("asaas_subscription_id", sa.String(255), unique=True, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("cycle", sa.String(10), nullable=False),
        sa.Column("next_due_date", sa.Date()),
        *_timestamps(),
    )

    # ── asaas_payments ──
    op.create_table(
        "asaas_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("asaas_payment_id", sa.String(255), unique=True, nullable=False),
        sa.Column("subscription_id", sa.Integer(), sa.ForeignKey("asaas_subscriptions.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("asaas_subscription_id", sa.String(255), index=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("asaas_customers.id"), nullable=False, index=True),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(40), nullable=False, server_default="PENDING"),
        sa.Column("billing_type", sa.String(20), nullable=False, server_default="PIX"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("invoice_url", sa.Text()),
        sa.Column("pix_qr_code_url", sa.Text()),
        sa.Column("pix_key", sa.Text()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("asaas_payments")
    op.drop_table("asaas_subscriptions")
    op.drop_table("stripe_subscriptions")
    op.drop_index("uq_subscriptions_user_open", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_table("asaas_customers")
    op.drop_table("stripe_customers")
    op.drop_table("plans")
    op.drop_table("users")
