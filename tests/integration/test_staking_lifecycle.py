"""Stake / claim / unstake lifecycle through the indexer."""

from __future__ import annotations

import pytest

from stakeidx.db.models import ActiveStake, StakingEvent, StakingStats, Token
from stakeidx.errors import DuplicateStake, MissingRelatedEntity, OwnershipMismatch
from stakeidx.indexing.indexer import ApplyOutcome
from stakeidx.rarity import Rarity
from stakeidx.rewards.calculator import BASE_DAILY_RATE, SECONDS_PER_DAY, pending_reward

from helpers import ALICE, BOB, POOL, ChainBuilder


async def _stake(indexer, chain: ChainBuilder, user: str, token_id: int) -> None:
    """Transfer into the pool and stake in the same transaction."""
    await indexer.apply(chain.transfer(user, POOL, token_id))
    await indexer.apply(chain.staked(user, token_id))


class TestStake:
    @pytest.mark.asyncio
    async def test_stake_creates_active_stake(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 3))
        await _stake(indexer, chain, ALICE, 2)

        stake = await fetch(ActiveStake, f"{ALICE}-2")
        assert stake.user == ALICE
        assert stake.staked_at == stake.last_claim_time == chain.timestamp
        assert stake.rarity is None
        assert stake.stake_tx_hash == f"0x{chain.block:064x}"

        stats = await fetch(StakingStats, ALICE)
        assert (stats.total_staked, stats.total_claimed, stats.total_earned) == (1, 0, 0)
        assert stats.last_updated == chain.timestamp
        assert (await fetch(Token, "2")).owner == POOL

    @pytest.mark.asyncio
    async def test_revealed_token_stake_takes_token_rarity(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 10))
        await indexer.apply(chain.reveal(offset=0))
        await _stake(indexer, chain, ALICE, 1)

        # Token 1 -> pool slot 0 -> Legendary
        assert (await fetch(ActiveStake, f"{ALICE}-1")).rarity == Rarity.LEGENDARY

    @pytest.mark.asyncio
    async def test_stake_of_staked_token_halts(self, indexer, chain):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        await _stake(indexer, chain, ALICE, 1)
        chain.mine()
        with pytest.raises(DuplicateStake):
            await indexer.apply(chain.staked(BOB, 1))

    @pytest.mark.asyncio
    async def test_stake_by_non_owner_halts(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        chain.mine()
        with pytest.raises(OwnershipMismatch):
            await indexer.apply(chain.staked(BOB, 1))
        assert await fetch(ActiveStake, f"{BOB}-1") is None

    @pytest.mark.asyncio
    async def test_stake_after_later_transfers_were_indexed(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        await indexer.apply(chain.transfer(ALICE, POOL, 1))
        stake = chain.staked(ALICE, 1)
        await indexer.apply(chain.transfer(POOL, BOB, 1))

        # NFT stream ran ahead; the current owner says nothing about stake time
        assert await indexer.apply(stake) == ApplyOutcome.APPLIED
        assert await fetch(ActiveStake, f"{ALICE}-1") is not None

    @pytest.mark.asyncio
    async def test_stake_before_token_is_indexed(self, indexer, chain, fetch):
        chain.mine()
        assert await indexer.apply(chain.staked(ALICE, 42)) == ApplyOutcome.APPLIED
        stake = await fetch(ActiveStake, f"{ALICE}-42")
        assert stake.rarity is None


class TestClaim:
    @pytest.mark.asyncio
    async def test_claim_resets_accrual_clock(self, indexer, chain, fetch, fetch_all):
        await indexer.apply(chain.minted(ALICE, 1, 2))
        await _stake(indexer, chain, ALICE, 2)

        chain.mine(SECONDS_PER_DAY)
        await indexer.apply(chain.claimed(ALICE, 2, BASE_DAILY_RATE))

        stake = await fetch(ActiveStake, f"{ALICE}-2")
        assert stake.last_claim_time == chain.timestamp
        assert pending_reward(stake.last_claim_time, Rarity.COMMON, chain.timestamp) == 0

        stats = await fetch(StakingStats, ALICE)
        assert stats.total_claimed == stats.total_earned == BASE_DAILY_RATE
        assert stats.total_staked == 1

        claims = await fetch_all(StakingEvent, StakingEvent.type == "CLAIM")
        assert [(c.token_id, c.amount) for c in claims] == [(2, BASE_DAILY_RATE)]

    @pytest.mark.asyncio
    async def test_claim_without_stake_halts(self, indexer, chain):
        chain.mine()
        with pytest.raises(MissingRelatedEntity):
            await indexer.apply(chain.claimed(ALICE, 1, 10))


class TestUnstake:
    @pytest.mark.asyncio
    async def test_stake_then_unstake_nets_zero(self, indexer, chain, fetch, fetch_all):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        await _stake(indexer, chain, ALICE, 1)
        chain.mine(3_600)
        await indexer.apply(chain.unstaked(ALICE, 1, 777))

        assert await fetch_all(ActiveStake) == []
        stats = await fetch(StakingStats, ALICE)
        assert stats.total_staked == 0
        assert stats.total_claimed == stats.total_earned == 777

        events = sorted(await fetch_all(StakingEvent), key=lambda e: e.block_number)
        assert [e.type for e in events] == ["STAKE", "UNSTAKE"]
        assert events[0].amount is None
        assert events[1].amount == 777

    @pytest.mark.asyncio
    async def test_restake_after_unstake(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        await _stake(indexer, chain, ALICE, 1)
        chain.mine()
        await indexer.apply(chain.unstaked(ALICE, 1, 0))
        await indexer.apply(chain.transfer(POOL, ALICE, 1, log_index=0))
        await _stake(indexer, chain, ALICE, 1)

        assert (await fetch(StakingStats, ALICE)).total_staked == 1
        assert (await fetch(ActiveStake, f"{ALICE}-1")).staked_at == chain.timestamp

    @pytest.mark.asyncio
    async def test_unstake_without_stake_halts(self, indexer, chain, fetch):
        chain.mine()
        with pytest.raises(MissingRelatedEntity):
            await indexer.apply(chain.unstaked(BOB, 1, 5))
        assert await fetch(StakingStats, BOB) is None
