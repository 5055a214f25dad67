"""Derived state store: point lookups and typed upsert-with-merge.

A ``StateStore`` wraps one ``AsyncSession`` whose transaction is owned by
the indexer, so everything a reducer writes for one source event commits
or rolls back together. Counter updates go through ``merge_*`` functions of
the form ``merge(existing | None, key, delta) -> row`` instead of ad-hoc
insert-then-increment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stakeidx.db.base import Base
from stakeidx.db.models import (
    GLOBAL_STATS_ID,
    ActiveStake,
    GlobalStats,
    IndexerCheckpoint,
    StakingStats,
    Token,
    UserStats,
)
from stakeidx.errors import DuplicateEvent, IndexingFault

AuditRow = TypeVar("AuditRow", bound=Base)


# ---------------------------------------------------------------------------
# Deltas and merge functions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserStatsDelta:
    total_minted: int = 0
    current_balance: int = 0
    total_transferred: int = 0


@dataclass(frozen=True)
class GlobalStatsDelta:
    total_minted: int = 0
    rarity_pool_set: bool | None = None


@dataclass(frozen=True)
class StakingStatsDelta:
    last_updated: int
    total_staked: int = 0
    reward: int = 0


def merge_user_stats(existing: UserStats | None, address: str, delta: UserStatsDelta) -> UserStats:
    """Apply a UserStats delta, creating the row with zero counters if absent."""
    row = existing or UserStats(id=address, total_minted=0, current_balance=0, total_transferred=0)
    balance = row.current_balance + delta.current_balance
    if balance < 0:
        msg = f"currentBalance of {address} would become {balance}"
        raise IndexingFault(msg)
    row.total_minted += delta.total_minted
    row.current_balance = balance
    row.total_transferred += delta.total_transferred
    return row


def merge_global_stats(existing: GlobalStats | None, delta: GlobalStatsDelta) -> GlobalStats:
    """Apply a GlobalStats delta to the singleton row."""
    row = existing or GlobalStats(
        id=GLOBAL_STATS_ID,
        total_minted=0,
        total_revealed=False,
        reveal_offset=0,
        rarity_pool_set=False,
        common_count=0,
        rare_count=0,
        epic_count=0,
        legendary_count=0,
    )
    row.total_minted += delta.total_minted
    if delta.rarity_pool_set is not None:
        row.rarity_pool_set = delta.rarity_pool_set
    return row


def merge_staking_stats(existing: StakingStats | None, user: str, delta: StakingStatsDelta) -> StakingStats:
    """Apply a StakingStats delta; reward sums only grow."""
    row = existing or StakingStats(id=user, total_staked=0, total_claimed=0, total_earned=0, last_updated=0)
    staked = row.total_staked + delta.total_staked
    if staked < 0:
        msg = f"totalStaked of {user} would become {staked}"
        raise IndexingFault(msg)
    if delta.reward < 0:
        msg = f"negative reward for {user}: {delta.reward}"
        raise IndexingFault(msg)
    row.total_staked = staked
    row.total_claimed += delta.reward
    row.total_earned += delta.reward
    row.last_updated = delta.last_updated
    return row


def stake_id(user: str, token_id: int) -> str:
    return f"{user}-{token_id}"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StateStore:
    """Table access for reducers, bound to the current event's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # --- Tokens ---

    async def token(self, token_id: int) -> Token | None:
        return await self.session.get(Token, str(token_id))

    async def add_tokens(self, tokens: list[Token]) -> None:
        self.session.add_all(tokens)
        await self.session.flush()

    async def tokens_up_to(self, last_token_id: int) -> list[Token]:
        """Tokens with ids in [1, last_token_id], ordered by id."""
        result = await self.session.execute(
            select(Token)
            .where(Token.token_id >= 1, Token.token_id <= last_token_id)
            .order_by(Token.token_id)
        )
        return list(result.scalars().all())

    # --- UserStats ---

    async def user_stats(self, address: str) -> UserStats | None:
        return await self.session.get(UserStats, address)

    async def merge_user_stats(self, address: str, delta: UserStatsDelta) -> UserStats:
        row = merge_user_stats(await self.user_stats(address), address, delta)
        self.session.add(row)
        await self.session.flush()
        return row

    # --- GlobalStats ---

    async def global_stats(self) -> GlobalStats | None:
        return await self.session.get(GlobalStats, GLOBAL_STATS_ID)

    async def merge_global_stats(self, delta: GlobalStatsDelta) -> GlobalStats:
        row = merge_global_stats(await self.global_stats(), delta)
        self.session.add(row)
        await self.session.flush()
        return row

    # --- Staking ---

    async def active_stake(self, user: str, token_id: int) -> ActiveStake | None:
        return await self.session.get(ActiveStake, stake_id(user, token_id))

    async def active_stake_for_token(self, token_id: int) -> ActiveStake | None:
        result = await self.session.execute(select(ActiveStake).where(ActiveStake.token_id == token_id))
        return result.scalar_one_or_none()

    async def add_active_stake(self, stake: ActiveStake) -> None:
        self.session.add(stake)
        await self.session.flush()

    async def remove_active_stake(self, stake: ActiveStake) -> None:
        await self.session.delete(stake)
        # Flush so a re-stake in the same transaction does not collide
        await self.session.flush()

    async def merge_staking_stats(self, user: str, delta: StakingStatsDelta) -> StakingStats:
        row = merge_staking_stats(await self.session.get(StakingStats, user), user, delta)
        self.session.add(row)
        await self.session.flush()
        return row

    # --- Audit rows ---

    async def append(self, row: AuditRow) -> AuditRow:
        """Insert an append-only audit row; an existing id means a replay."""
        model = type(row)
        row_id = row.id  # type: ignore[attr-defined]
        if await self.session.get(model, row_id) is not None:
            raise DuplicateEvent(row_id)
        self.session.add(row)
        await self.session.flush()
        return row

    # --- Checkpoints ---

    async def checkpoint(self, contract: str) -> IndexerCheckpoint | None:
        return await self.session.get(IndexerCheckpoint, contract)

    async def advance_checkpoint(self, contract: str, block_number: int, log_index: int) -> IndexerCheckpoint:
        row = await self.checkpoint(contract)
        now = datetime.now(timezone.utc)
        if row is None:
            row = IndexerCheckpoint(id=contract, last_block=block_number, last_log_index=log_index, updated_at=now)
            self.session.add(row)
        else:
            row.last_block = block_number
            row.last_log_index = log_index
            row.updated_at = now
        return row
