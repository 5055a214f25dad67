"""NFT mint/transfer lifecycle through the indexer and the SQLite state store."""

from __future__ import annotations

from collections import Counter

import pytest

from stakeidx.db.models import GLOBAL_STATS_ID, GlobalStats, MintEvent, RoleEvent, Token, UserStats
from stakeidx.errors import DuplicateMint, MissingRelatedEntity, OwnershipMismatch
from stakeidx.indexing.indexer import ApplyOutcome

from helpers import ALICE, BOB, CAROL, NFT, ZERO


async def _assert_balances_match_ownership(fetch_all) -> None:
    owned = Counter(t.owner for t in await fetch_all(Token))
    for stats in await fetch_all(UserStats):
        assert stats.current_balance == owned.get(stats.id, 0), stats.id


class TestMint:
    @pytest.mark.asyncio
    async def test_batch_mint_creates_tokens(self, indexer, chain, fetch, fetch_all):
        assert await indexer.apply(chain.minted(ALICE, 1, 10)) == ApplyOutcome.APPLIED

        tokens = await fetch_all(Token)
        assert sorted(t.token_id for t in tokens) == list(range(1, 11))
        assert all(t.owner == ALICE and t.minted_by == ALICE for t in tokens)
        assert all(t.rarity is None and not t.is_revealed for t in tokens)
        assert all(t.minted_at == chain.timestamp for t in tokens)

        stats = await fetch(UserStats, ALICE)
        assert (stats.total_minted, stats.current_balance, stats.total_transferred) == (10, 10, 0)

        global_stats = await fetch(GlobalStats, GLOBAL_STATS_ID)
        assert global_stats.total_minted == 10
        assert global_stats.total_revealed is False

        mint = await fetch(MintEvent, f"0x{chain.block:064x}-0")
        assert (mint.to, mint.start_token_id, mint.quantity) == (ALICE, 1, 10)

    @pytest.mark.asyncio
    async def test_minting_existing_token_halts(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 3))
        with pytest.raises(DuplicateMint):
            await indexer.apply(chain.minted(BOB, 3, 2))

        # Rolled back as a whole
        assert (await fetch(Token, "3")).owner == ALICE
        assert await fetch(Token, "4") is None
        assert await fetch(UserStats, BOB) is None
        assert (await fetch(GlobalStats, GLOBAL_STATS_ID)).total_minted == 3


class TestTransfer:
    @pytest.mark.asyncio
    async def test_transfer_moves_ownership(self, indexer, chain, fetch, fetch_all):
        await indexer.apply(chain.minted(ALICE, 1, 10))
        await indexer.apply(chain.transfer(ALICE, BOB, 3))

        assert (await fetch(Token, "3")).owner == BOB
        alice = await fetch(UserStats, ALICE)
        bob = await fetch(UserStats, BOB)
        assert (alice.current_balance, alice.total_transferred, alice.total_minted) == (9, 1, 10)
        assert (bob.current_balance, bob.total_transferred, bob.total_minted) == (1, 0, 0)
        await _assert_balances_match_ownership(fetch_all)

    @pytest.mark.asyncio
    async def test_balances_track_ownership_over_many_transfers(self, indexer, chain, fetch_all):
        await indexer.apply(chain.minted(ALICE, 1, 5))
        await indexer.apply(chain.minted(BOB, 6, 5))
        moves = [(ALICE, BOB, 1), (BOB, CAROL, 1), (BOB, ALICE, 7), (CAROL, ALICE, 1), (ALICE, CAROL, 2)]
        for frm, to, token_id in moves:
            await indexer.apply(chain.transfer(frm, to, token_id))
            await _assert_balances_match_ownership(fetch_all)

    @pytest.mark.asyncio
    async def test_mint_side_transfer_is_ignored(self, indexer, chain, fetch):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        assert await indexer.apply(chain.transfer(ZERO, ALICE, 1, log_index=1)) == ApplyOutcome.APPLIED
        assert (await fetch(UserStats, ALICE)).current_balance == 1
        assert await fetch(UserStats, ZERO) is None

    @pytest.mark.asyncio
    async def test_transfer_of_unknown_token_halts(self, indexer, chain):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        with pytest.raises(MissingRelatedEntity):
            await indexer.apply(chain.transfer(ALICE, BOB, 99))

    @pytest.mark.asyncio
    async def test_transfer_from_untracked_sender_halts(self, indexer, chain):
        await indexer.apply(chain.minted(ALICE, 1, 1))
        with pytest.raises(MissingRelatedEntity):
            await indexer.apply(chain.transfer(CAROL, BOB, 1))

    @pytest.mark.asyncio
    async def test_transfer_by_non_owner_halts_without_touching_balances(self, indexer, chain, fetch, fetch_all):
        await indexer.apply(chain.minted(ALICE, 1, 2))
        await indexer.apply(chain.minted(BOB, 3, 1))
        bad = chain.transfer(BOB, CAROL, 1)

        with pytest.raises(OwnershipMismatch):
            await indexer.apply(bad)

        assert (await fetch(Token, "1")).owner == ALICE
        assert (await fetch(UserStats, ALICE)).current_balance == 2
        bob = await fetch(UserStats, BOB)
        assert (bob.current_balance, bob.total_transferred) == (1, 0)
        assert await fetch(UserStats, CAROL) is None
        await _assert_balances_match_ownership(fetch_all)

        async def stream():
            yield bad
            yield chain.transfer(ALICE, CAROL, 2)

        await indexer.consume(NFT, stream())
        assert isinstance(indexer.halted[NFT], OwnershipMismatch)
        assert (await fetch(Token, "2")).owner == ALICE


class TestAccessControl:
    @pytest.mark.asyncio
    async def test_role_events_are_recorded(self, indexer, chain, fetch_all):
        role = "0x" + "ab" * 32
        chain.mine()
        await indexer.apply(chain.log(NFT, "RoleGranted", {"role": role, "account": BOB, "sender": ALICE}))
        chain.mine()
        await indexer.apply(chain.log(NFT, "RoleRevoked", {"role": role, "account": BOB, "sender": ALICE}))

        rows = sorted(await fetch_all(RoleEvent), key=lambda r: r.block_number)
        assert [r.event_type for r in rows] == ["GRANTED", "REVOKED"]
        assert all(r.account == BOB and r.sender == ALICE and r.role == role for r in rows)

    @pytest.mark.asyncio
    async def test_rarity_pool_set_flag(self, indexer, chain, fetch):
        chain.mine()
        await indexer.apply(chain.log(NFT, "RarityPoolSet", {}))
        assert (await fetch(GlobalStats, GLOBAL_STATS_ID)).rarity_pool_set is True
