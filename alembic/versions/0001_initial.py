from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _soft_delete() -> sa.Column:
    return sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "plan",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("max_policies", sa.Integer(), nullable=True),
        sa.Column("max_products", sa.Integer(), nullable=True),
        sa.Column("max_brands", sa.Integer(), nullable=True),
        sa.Column("max_policy_types", sa.Integer(), nullable=True),
        sa.Column("max_notifications", sa.Integer(), nullable=True),
        sa.Column("max_family_members", sa.Integer(), nullable=True),
        sa.Column("monthly_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("yearly_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("features", sa.JSON(), nullable=True),
        sa.Column("allow_family_members", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _soft_delete(),
    )
    op.create_index("ix_plan_name", "plan", ["name"])
    op.create_index("ix_plan_deleted_at", "plan", ["deleted_at"])

    op.create_table(
        "coupon",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("discount_type", sa.String(length=32), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("min_purchase", sa.Numeric(10, 2), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allowed_user_ids", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _soft_delete(),
    )
    op.create_index("ix_coupon_code", "coupon", ["code"])
    op.create_index("ix_coupon_deleted_at", "coupon", ["deleted_at"])

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="User"),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("plan", sa.String(length=32), nullable=False, server_default="Free"),
        sa.Column("billing_type", sa.String(length=32), nullable=False, server_default="Unlimited"),
        sa.Column("subscription_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_status", sa.String(length=32), nullable=False, server_default="Pending"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("referral_code", sa.String(length=16), nullable=True),
        sa.Column("referred_by_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        _created_at(),
        _soft_delete(),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_referral_code", "user", ["referral_code"], unique=True)
    op.create_index("ix_user_role", "user", ["role"])
    op.create_index("ix_user_owner_id", "user", ["owner_id"])
    op.create_index("ix_user_plan", "user", ["plan"])
    op.create_index("ix_user_subscription_expiry_date", "user", ["subscription_expiry_date"])
    op.create_index("ix_user_deleted_at", "user", ["deleted_at"])

    op.create_table(
        "brand",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _soft_delete(),
    )
    op.create_table(
        "policytype",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _soft_delete(),
    )
    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("brand_id", sa.Integer(), sa.ForeignKey("brand.id"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _soft_delete(),
    )
    op.create_table(
        "policy",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id"), nullable=True),
        sa.Column("policy_type_id", sa.Integer(), sa.ForeignKey("policytype.id"), nullable=True),
        sa.Column("policy_number", sa.String(length=80), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _soft_delete(),
    )
    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id"), nullable=True),
        sa.Column("policy_id", sa.Integer(), sa.ForeignKey("policy.id"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("schedule_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Pending"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _soft_delete(),
    )
    for table in ("brand", "policytype", "product", "policy", "notification"):
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_deleted_at", table, ["deleted_at"])
    op.create_index("ix_notification_schedule_date", "notification", ["schedule_date"])
    op.create_index("ix_notification_status", "notification", ["status"])


def downgrade() -> None:
    for table in ("notification", "policy", "product", "policytype", "brand", "user", "coupon", "plan"):
        op.drop_table(table)
