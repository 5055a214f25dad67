"""ORM models for the derived tables.

Chain times are unix seconds (block timestamps) stored as integers so the
reward engine can work on them without conversion. Addresses are stored
lower-cased.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from stakeidx.db.base import Base
from stakeidx.db.types import Uint256

GLOBAL_STATS_ID = "global"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Token(Base):
    """Current ownership and rarity of one NFT."""

    __tablename__ = "nft"
    __table_args__ = (
        Index("nft_owner_idx", "owner"),
        Index("nft_rarity_idx", "rarity"),
    )

    id: Mapped[str] = mapped_column(String(78), primary_key=True)
    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    owner: Mapped[str] = mapped_column(String(42), nullable=False)
    rarity: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    is_revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    minted_by: Mapped[str] = mapped_column(String(42), nullable=False)


class UserStats(Base):
    """Per-address mint/transfer counters."""

    __tablename__ = "user_stats"

    id: Mapped[str] = mapped_column(String(42), primary_key=True)
    total_minted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_transferred: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class GlobalStats(Base):
    """Singleton row (id="global") with collection-wide counters."""

    __tablename__ = "global_stats"

    id: Mapped[str] = mapped_column(String(16), primary_key=True, default=GLOBAL_STATS_ID)
    total_minted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reveal_offset: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rarity_pool_set: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    common_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rare_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    epic_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    legendary_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ActiveStake(Base):
    """A token currently held by the staking pool on behalf of a user."""

    __tablename__ = "active_stake"
    __table_args__ = (Index("active_stake_user_idx", "user"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    staked_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_claim_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rarity: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    stake_tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)


class StakingStats(Base):
    """Per-user staking counters and cumulative reward sums."""

    __tablename__ = "staking_stats"

    id: Mapped[str] = mapped_column(String(42), primary_key=True)
    total_staked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_claimed: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    total_earned: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False)


# ---------------------------------------------------------------------------
# Audit projections (append-only)
# ---------------------------------------------------------------------------


class MintEvent(Base):
    """One row per NFTMinted log (whole batch)."""

    __tablename__ = "mint_event"
    __table_args__ = (Index("mint_event_to_idx", "to"),)

    id: Mapped[str] = mapped_column(String(96), primary_key=True)
    to: Mapped[str] = mapped_column(String(42), nullable=False)
    start_token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)


class RevealEvent(Base):
    """The single RevealCompleted log, keyed by transaction hash."""

    __tablename__ = "reveal_event"

    id: Mapped[str] = mapped_column(String(66), primary_key=True)
    offset: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)


class RoleEvent(Base):
    """RoleGranted / RoleRevoked audit row."""

    __tablename__ = "role_event"
    __table_args__ = (Index("role_event_account_idx", "account"),)

    id: Mapped[str] = mapped_column(String(96), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(8), nullable=False)
    role: Mapped[str] = mapped_column(String(66), nullable=False)
    account: Mapped[str] = mapped_column(String(42), nullable=False)
    sender: Mapped[str] = mapped_column(String(42), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)


class StakingEvent(Base):
    """STAKE / UNSTAKE / CLAIM history row."""

    __tablename__ = "staking_event"
    __table_args__ = (
        Index("staking_event_user_idx", "user"),
        Index("staking_event_type_idx", "type"),
        Index("staking_event_timestamp_idx", "timestamp"),
        Index("staking_event_user_type_idx", "user", "type"),
    )

    id: Mapped[str] = mapped_column(String(96), primary_key=True)
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount: Mapped[int | None] = mapped_column(Uint256, nullable=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)


# ---------------------------------------------------------------------------
# Ingestion bookkeeping
# ---------------------------------------------------------------------------


class IndexerCheckpoint(Base):
    """Per-contract high-water mark: last applied (block, log index)."""

    __tablename__ = "indexer_checkpoint"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
