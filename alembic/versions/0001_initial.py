"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "providers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("slug", sa.String(128), nullable=False),
        sa.Column("info", sa.Text, nullable=True),
        sa.Column("image", sa.String(512), nullable=True),
        sa.Column("certified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("popularity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("plan_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_providers_id", "providers", ["id"], unique=False)
    op.create_index("ix_providers_slug", "providers", ["slug"], unique=True)

    op.create_table(
        "plans",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("provider_id", sa.Integer, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("usd_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("prices", sa.JSON, nullable=False),
        sa.Column("price_info", sa.Text, nullable=True),
        sa.Column("capacity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("capacity_info", sa.String(255), nullable=True),
        sa.Column("period", sa.Integer, nullable=False, server_default="0"),
        sa.Column("validity_info", sa.String(255), nullable=True),
        sa.Column("speed_limit", sa.Float, nullable=True),
        sa.Column("reduced_speed", sa.Float, nullable=True),
        sa.Column("possible_throttling", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_low_latency", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("has_5g", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("tethering", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("can_top_up", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("phone_number", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("subscription", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("subscription_period", sa.Integer, nullable=True),
        sa.Column("pay_as_you_go", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("new_user_only", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_consecutive", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("ekyc", sa.Boolean, nullable=True),
        sa.Column("telephony", sa.JSON, nullable=True),
        sa.Column("coverages", sa.JSON, nullable=False),
        sa.Column("coverage_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("internet_breakouts", sa.JSON, nullable=False),
        sa.Column("additional_info", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("provider_id", "slug", name="uq_plans_provider_slug"),
    )
    op.create_index("ix_plans_id", "plans", ["id"], unique=False)
    op.create_index("ix_plans_provider_id", "plans", ["provider_id"], unique=False)
    op.create_index("ix_plans_provider_price", "plans", ["provider_id", "usd_price"], unique=False)


def downgrade():
    op.drop_index("ix_plans_provider_price", table_name="plans")
    op.drop_index("ix_plans_provider_id", table_name="plans")
    op.drop_index("ix_plans_id", table_name="plans")
    op.drop_table("plans")
    op.drop_index("ix_providers_slug", table_name="providers")
    op.drop_index("ix_providers_id", table_name="providers")
    op.drop_table("providers")
