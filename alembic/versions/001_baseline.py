"""Baseline: derived NFT, staking and checkpoint tables.

Wei amounts are stored as decimal strings (String(78)) to keep the full
uint256 range exact.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all derived-state tables."""
    # --- Entities ---
    op.create_table(
        "nft",
        sa.Column("id", sa.String(78), primary_key=True),
        sa.Column("token_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("owner", sa.String(42), nullable=False),
        sa.Column("rarity", sa.SmallInteger(), nullable=True),
        sa.Column("is_revealed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("minted_at", sa.BigInteger(), nullable=False),
        sa.Column("minted_by", sa.String(42), nullable=False),
    )
    op.create_index("nft_owner_idx", "nft", ["owner"])
    op.create_index("nft_rarity_idx", "nft", ["rarity"])

    op.create_table(
        "user_stats",
        sa.Column("id", sa.String(42), primary_key=True),
        sa.Column("total_minted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_transferred", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "global_stats",
        sa.Column("id", sa.String(16), primary_key=True),
        sa.Column("total_minted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_revealed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reveal_offset", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("rarity_pool_set", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("common_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rare_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("epic_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("legendary_count", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "active_stake",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("user", sa.String(42), nullable=False),
        sa.Column("token_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("staked_at", sa.BigInteger(), nullable=False),
        sa.Column("last_claim_time", sa.BigInteger(), nullable=False),
        sa.Column("rarity", sa.SmallInteger(), nullable=True),
        sa.Column("stake_tx_hash", sa.String(66), nullable=False),
    )
    op.create_index("active_stake_user_idx", "active_stake", ["user"])

    op.create_table(
        "staking_stats",
        sa.Column("id", sa.String(42), primary_key=True),
        sa.Column("total_staked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_claimed", sa.String(78), nullable=False, server_default="0"),
        sa.Column("total_earned", sa.String(78), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.BigInteger(), nullable=False),
    )

    # --- Audit projections ---
    op.create_table(
        "mint_event",
        sa.Column("id", sa.String(96), primary_key=True),
        sa.Column("to", sa.String(42), nullable=False),
        sa.Column("start_token_id", sa.BigInteger(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
    )
    op.create_index("mint_event_to_idx", "mint_event", ["to"])

    op.create_table(
        "reveal_event",
        sa.Column("id", sa.String(66), primary_key=True),
        sa.Column("offset", sa.BigInteger(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
    )

    op.create_table(
        "role_event",
        sa.Column("id", sa.String(96), primary_key=True),
        sa.Column("event_type", sa.String(8), nullable=False),
        sa.Column("role", sa.String(66), nullable=False),
        sa.Column("account", sa.String(42), nullable=False),
        sa.Column("sender", sa.String(42), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
    )
    op.create_index("role_event_account_idx", "role_event", ["account"])

    op.create_table(
        "staking_event",
        sa.Column("id", sa.String(96), primary_key=True),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("user", sa.String(42), nullable=False),
        sa.Column("token_id", sa.BigInteger(), nullable=False),
        sa.Column("amount", sa.String(78), nullable=True),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
    )
    op.create_index("staking_event_user_idx", "staking_event", ["user"])
    op.create_index("staking_event_type_idx", "staking_event", ["type"])
    op.create_index("staking_event_timestamp_idx", "staking_event", ["timestamp"])
    op.create_index("staking_event_user_type_idx", "staking_event", ["user", "type"])

    # --- Ingestion bookkeeping ---
    op.create_table(
        "indexer_checkpoint",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("last_block", sa.BigInteger(), nullable=False),
        sa.Column("last_log_index", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop all derived-state tables."""
    for table in (
        "indexer_checkpoint",
        "staking_event",
        "role_event",
        "reveal_event",
        "mint_event",
        "staking_stats",
        "active_stake",
        "global_stats",
        "user_stats",
        "nft",
    ):
        op.drop_table(table)
