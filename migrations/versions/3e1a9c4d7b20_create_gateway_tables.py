"""create gateway tables

Revision ID: 3e1a9c4d7b20
Revises:
Create Date: 2026-10-18 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "3e1a9c4d7b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "merchants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("api_key", sa.String(64), nullable=False),
        sa.Column("api_secret", sa.String(64), nullable=False),
        sa.Column("webhook_url", sa.String(512), nullable=True),
        sa.Column("webhook_secret", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_merchants_email", "merchants", ["email"], unique=True)
    op.create_index("ix_merchants_api_key", "merchants", ["api_key"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "merchant_id",
            sa.String(36),
            sa.ForeignKey("merchants.id", name="fk_orders_merchant_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("receipt", sa.String(255), nullable=True),
        sa.Column("notes", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="created"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_orders_merchant_id", "orders", ["merchant_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey("orders.id", name="fk_payments_order_id"), nullable=False),
        sa.Column("merchant_id", sa.String(36), sa.ForeignKey("merchants.id", name="fk_payments_merchant_id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="INR"),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("captured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("vpa", sa.String(255), nullable=True),
        sa.Column("card_network", sa.String(20), nullable=True),
        sa.Column("card_last4", sa.String(4), nullable=True),
        sa.Column("error_code", sa.String(50), nullable=True),
        sa.Column("error_description", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'success', 'failed')",
            name="ck_payments_status",
        ),
        sa.CheckConstraint("method IN ('upi', 'card')", name="ck_payments_method"),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("ix_payments_merchant_created", "payments", ["merchant_id", "created_at"])

    op.create_table(
        "refunds",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("payment_id", sa.String(64), sa.ForeignKey("payments.id", name="fk_refunds_payment_id"), nullable=False),
        sa.Column("merchant_id", sa.String(36), sa.ForeignKey("merchants.id", name="fk_refunds_merchant_id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'processed')", name="ck_refunds_status"),
    )
    op.create_index("ix_refunds_payment_status", "refunds", ["payment_id", "status"])

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("merchant_id", sa.String(36), sa.ForeignKey("merchants.id", name="fk_webhook_logs_merchant_id"), nullable=False),
        sa.Column("event", sa.String(50), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(), nullable=True),
        sa.Column("next_retry_at", sa.DateTime(), nullable=True),
        sa.Column("response_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_webhook_logs_merchant_created", "webhook_logs", ["merchant_id", "created_at"])
    op.create_index("ix_webhook_logs_status_retry", "webhook_logs", ["status", "next_retry_at"])

    op.create_table(
        "idempotency_keys",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column(
            "merchant_id",
            sa.String(36),
            sa.ForeignKey("merchants.id", name="fk_idempotency_keys_merchant_id"),
            primary_key=True,
        ),
        sa.Column("response", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("idempotency_keys")
    op.drop_index("ix_webhook_logs_status_retry", table_name="webhook_logs")
    op.drop_index("ix_webhook_logs_merchant_created", table_name="webhook_logs")
    op.drop_table("webhook_logs")
    op.drop_index("ix_refunds_payment_status", table_name="refunds")
    op.drop_table("refunds")
    op.drop_index("ix_payments_merchant_created", table_name="payments")
    op.drop_index("ix_payments_order_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_orders_merchant_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_merchants_api_key", table_name="merchants")
    op.drop_index("ix_merchants_email", table_name="merchants")
    op.drop_table("merchants")
