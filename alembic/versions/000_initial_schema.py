"""Initial rebate schema

Revision ID: 000_initial_schema
Revises:
Create Date: 2025-11-16

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "000_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PLATFORMS = ("douyin", "xiaohongshu", "bilibili", "kuaishou")


def upgrade() -> None:
    """Create the rebate ledger and the tables it caches into."""

    # Rebate ledger
    op.create_table(
        "rebate_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("config_id", sa.String(64), nullable=False),
        sa.Column("target_type", sa.Enum("talent", "agency", name="targettype"), nullable=False),
        sa.Column("target_id", sa.String(64), nullable=False),
        sa.Column("platform", sa.Enum(*PLATFORMS, name="platform"), nullable=False),
        sa.Column("rebate_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column(
            "effect_type",
            sa.Enum("immediate", "next_cooperation", name="effecttype"),
            nullable=False,
        ),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "active", "expired", name="rebatestatus"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False, server_default="system"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.UniqueConstraint("config_id", name="uq_rebate_configs_config_id"),
    )
    op.create_index("ix_rebate_configs_effective_date", "rebate_configs", ["effective_date"])
    op.create_index("ix_rebate_configs_status", "rebate_configs", ["status"])
    op.create_index("ix_rebate_configs_created_by", "rebate_configs", ["created_by"])
    op.create_index(
        "idx_target_platform_created_at",
        "rebate_configs",
        ["target_id", "platform", "created_at"],
    )
    op.create_index(
        "idx_target_platform_status",
        "rebate_configs",
        ["target_id", "platform", "status"],
    )
    # At most one active record per (target, platform)
    op.create_index(
        "uq_rebate_configs_active",
        "rebate_configs",
        ["target_type", "target_id", "platform"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    # Talents table
    op.create_table(
        "talents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("one_id", sa.String(64), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("agency_id", sa.String(64), nullable=True),
        sa.Column("rebate_mode", sa.Enum("sync", "independent", name="rebatemode"), nullable=True),
        sa.Column("current_rebate_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column(
            "current_rebate_source",
            sa.Enum("default", "personal", "agency", "agency_sync", "customer", name="rebatesource"),
            nullable=True,
        ),
        sa.Column("current_rebate_effective_date", sa.Date(), nullable=True),
        sa.Column("current_rebate_last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_rebate_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("one_id", "platform", name="uq_talents_one_id_platform"),
    )
    op.create_index("ix_talents_one_id", "talents", ["one_id"])
    op.create_index("ix_talents_agency_id", "talents", ["agency_id"])

    # Agencies table
    op.create_table(
        "agencies",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("rebate_config", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Customer-talent relations
    op.create_table(
        "customer_talents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("one_id", sa.String(64), nullable=False),
        sa.Column("platform", sa.String(20), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "inactive", name="customertalentstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("customer_rebate_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("customer_rebate_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("customer_rebate_effective_date", sa.Date(), nullable=True),
        sa.Column("customer_rebate_notes", sa.Text(), nullable=True),
        sa.Column("customer_rebate_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("customer_rebate_updated_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "customer_id", "one_id", "platform",
            name="uq_customer_talents_customer_talent_platform",
        ),
    )
    op.create_index("ix_customer_talents_customer_id", "customer_talents", ["customer_id"])


def downgrade() -> None:
    """Drop all rebate tables."""
    op.drop_table("customer_talents")
    op.drop_table("agencies")
    op.drop_table("talents")
    op.drop_index("uq_rebate_configs_active", table_name="rebate_configs")
    op.drop_table("rebate_configs")

    # Drop enums (PostgreSQL specific)
    for enum_name in (
        "customertalentstatus",
        "rebatesource",
        "rebatemode",
        "rebatestatus",
        "effecttype",
        "platform",
        "targettype",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
