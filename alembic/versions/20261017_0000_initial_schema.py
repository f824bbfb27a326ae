"""Initial schema for the market mirror, user caches, leaderboards and contracts.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Imported markets plus mirrored ledger state
    op.create_table(
        "markets",
        sa.Column("market_address", sa.String(42), nullable=False),
        sa.Column("market_type", sa.String(8), nullable=False),
        sa.Column("project_name", sa.String(128), nullable=True),
        sa.Column("project_a", sa.String(128), nullable=True),
        sa.Column("project_b", sa.String(128), nullable=True),
        sa.Column("market_id", sa.String(66), nullable=False),
        sa.Column("question_hash", sa.String(66), nullable=False),
        sa.Column("last_tx_hash", sa.String(66), nullable=True),
        sa.Column("deployment_date", sa.Date(), nullable=True),
        sa.Column("deployment_index", sa.Integer(), nullable=True),
        sa.Column("phase", sa.String(16), nullable=False),
        sa.Column("pool_a", sa.String(78), nullable=True),
        sa.Column("pool_b", sa.String(78), nullable=True),
        sa.Column("winner", sa.Integer(), nullable=True),
        sa.Column("lock_time", sa.BigInteger(), nullable=False),
        sa.Column("resolve_time", sa.BigInteger(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("market_address"),
    )
    op.create_index("idx_markets_deployment", "markets", ["deployment_date", "deployment_index"])
    op.create_index("idx_markets_last_synced", "markets", ["last_synced_at"])

    # Per-user claims cache
    op.create_table(
        "user_claims",
        sa.Column("market_address", sa.String(42), nullable=False),
        sa.Column("user_address", sa.String(42), nullable=False),
        sa.Column("a_claims", sa.String(78), nullable=False),
        sa.Column("b_claims", sa.String(78), nullable=False),
        sa.Column("redeemed", sa.Boolean(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("market_address", "user_address"),
    )
    op.create_index("idx_user_claims_user", "user_claims", ["user_address"])

    # Token balance cache
    op.create_table(
        "user_balances",
        sa.Column("user_address", sa.String(42), nullable=False),
        sa.Column("balance", sa.String(78), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_address"),
    )

    # Leaderboard snapshots
    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("snapshot_index", sa.Integer(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("score", sa.Numeric(20, 6), nullable=False),
        sa.Column("logo", sa.String(512), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "snapshot_date", "snapshot_index", "rank", name="uq_leaderboard_entries_rank"
        ),
    )
    op.create_index(
        "idx_leaderboard_entries_batch", "leaderboard_entries", ["snapshot_date", "snapshot_index"]
    )

    # Contract registry
    op.create_table(
        "contracts",
        sa.Column("contract_type", sa.String(64), nullable=False),
        sa.Column("address", sa.String(42), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("contract_type"),
    )


def downgrade() -> None:
    op.drop_table("contracts")

    op.drop_index("idx_leaderboard_entries_batch", table_name="leaderboard_entries")
    op.drop_table("leaderboard_entries")

    op.drop_table("user_balances")

    op.drop_index("idx_user_claims_user", table_name="user_claims")
    op.drop_table("user_claims")

    op.drop_index("idx_markets_last_synced", table_name="markets")
    op.drop_index("idx_markets_deployment", table_name="markets")
    op.drop_table("markets")
