from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0002_payment_orders"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "paymentorder",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("plan", sa.String(length=32), nullable=False),
        sa.Column("billing_cycle", sa.String(length=32), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("points_applied", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("coupon_code", sa.String(length=64), nullable=True),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_paymentorder_order_id", "paymentorder", ["order_id"], unique=True)
    op.create_index("ix_paymentorder_user_id", "paymentorder", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_paymentorder_user_id", table_name="paymentorder")
    op.drop_index("ix_paymentorder_order_id", table_name="paymentorder")
    op.drop_table("paymentorder")
