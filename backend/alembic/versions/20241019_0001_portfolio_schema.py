"""Assets, policy versions and monthly snapshots.

Revision ID: 20241019_0001
Revises:
Create Date: 2024-10-19 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20241019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Bound to their own MetaData so create_table does not emit CREATE TYPE a second time.
_types = sa.MetaData()
asset_category = sa.Enum(
    "security", "fund", "wealth", "gold", "fixed", "crypto", "other",
    name="asset_category",
    metadata=_types,
)
policy_status = sa.Enum("active", "archived", name="policy_status", metadata=_types)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    asset_category.create(op.get_bind(), checkfirst=True)
    policy_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "assets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("category", asset_category, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("ticker", sa.String(length=50), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "policy_versions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("rationale", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("status", policy_status, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_policy_versions_start_date", "policy_versions", ["start_date"])

    op.create_table(
        "policy_layers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "version_id",
            sa.String(length=36),
            sa.ForeignKey("policy_versions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("weight_pct", sa.Numeric(9, 4), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_policy_layers_version_id", "policy_layers", ["version_id"])

    op.create_table(
        "policy_targets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "layer_id",
            sa.String(length=36),
            sa.ForeignKey("policy_layers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("intra_layer_weight_pct", sa.Numeric(9, 4), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_policy_targets_layer_id", "policy_targets", ["layer_id"])
    op.create_index("ix_policy_targets_asset_id", "policy_targets", ["asset_id"])

    op.create_table(
        "snapshots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("total_value", sa.Numeric(24, 2), nullable=False),
        sa.Column("total_invested", sa.Numeric(24, 2), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_snapshots_month", "snapshots", ["month"], unique=True)

    op.create_table(
        "holding_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "snapshot_id",
            sa.String(length=36),
            sa.ForeignKey("snapshots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_id", sa.String(length=36), nullable=False),
        sa.Column("asset_name", sa.String(length=255), nullable=False),
        sa.Column("category", asset_category, nullable=False),
        sa.Column("unit_price", sa.Numeric(24, 6), nullable=False),
        sa.Column("quantity", sa.Numeric(24, 6), nullable=False),
        sa.Column("market_value", sa.Numeric(24, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(24, 2), nullable=False),
        sa.Column("added_quantity", sa.Numeric(24, 6), nullable=False),
        sa.Column("added_principal", sa.Numeric(24, 2), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("snapshot_id", "asset_id", name="uq_holding_records_snapshot_asset"),
    )
    op.create_index("ix_holding_records_snapshot_id", "holding_records", ["snapshot_id"])
    op.create_index("ix_holding_records_asset_id", "holding_records", ["asset_id"])


def downgrade() -> None:
    op.drop_table("holding_records")
    op.drop_table("snapshots")
    op.drop_table("policy_targets")
    op.drop_table("policy_layers")
    op.drop_table("policy_versions")
    op.drop_table("assets")
    policy_status.drop(op.get_bind(), checkfirst=True)
    asset_category.drop(op.get_bind(), checkfirst=True)
