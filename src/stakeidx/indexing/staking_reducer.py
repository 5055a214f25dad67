"""NFTStakingPool lifecycle reducer.

Per (user, tokenId): NotStaked -> Staked -> NotStaked, re-enterable. A
claim resets the stake's accrual clock (``last_claim_time``) so claimed
time is never counted again by the reward engine.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

import structlog

from stakeidx.db.models import ActiveStake, StakingEvent
from stakeidx.errors import DuplicateStake, MissingRelatedEntity, OwnershipMismatch
from stakeidx.events.schemas import ContractName, DecodedEvent, EventName, RewardClaimedArgs, StakedArgs, UnstakedArgs
from stakeidx.indexing.locks import token_key, user_key
from stakeidx.indexing.store import StakingStatsDelta, StateStore, stake_id

logger = structlog.get_logger(__name__)

STAKING_HANDLERS: dict[EventName, str] = {
    EventName.STAKED: "_handle_staked",
    EventName.REWARD_CLAIMED: "_handle_claimed",
    EventName.UNSTAKED: "_handle_unstaked",
}


class StakingType(str, Enum):
    """StakingEvent.type values."""

    STAKE = "STAKE"
    UNSTAKE = "UNSTAKE"
    CLAIM = "CLAIM"


class StakingReducer:
    """Folds stake/claim/unstake events into ActiveStake and StakingStats."""

    handles = frozenset(STAKING_HANDLERS)

    def __init__(self, pool_address: str = "") -> None:
        self.pool_address = pool_address.lower()

    def lock_keys(self, event: DecodedEvent) -> Iterable[str]:
        args: StakedArgs | UnstakedArgs | RewardClaimedArgs = event.args  # type: ignore[assignment]
        return [token_key(args.token_id), user_key(args.user)]

    async def apply(self, store: StateStore, event: DecodedEvent) -> None:
        handler = getattr(self, STAKING_HANDLERS[event.name])
        await handler(store, event)

    async def _handle_staked(self, store: StateStore, event: DecodedEvent) -> None:
        args: StakedArgs = event.args  # type: ignore[assignment]
        ts = event.ctx.block_timestamp

        existing = await store.active_stake_for_token(args.token_id)
        if existing is not None:
            msg = f"Token {args.token_id} already staked by {existing.user}"
            raise DuplicateStake(msg)

        rarity = args.rarity
        token = await store.token(args.token_id)
        if token is not None:
            if token.owner not in (args.user, self.pool_address):
                if await self._nft_stream_before(store, event.ctx.block_number):
                    msg = f"Token {args.token_id} owned by {token.owner}, staked by {args.user}"
                    raise OwnershipMismatch(msg)
                # Later NFT transfers were already applied; owner at stake time is unknown
                logger.debug("stake_owner_moved_on", token_id=args.token_id, owner=token.owner, user=args.user)
            if rarity is None:
                rarity = token.rarity
        else:
            # NFT stream may lag behind the pool stream
            logger.debug("stake_token_not_indexed", token_id=args.token_id, user=args.user)

        await store.add_active_stake(
            ActiveStake(
                id=stake_id(args.user, args.token_id),
                user=args.user,
                token_id=args.token_id,
                staked_at=ts,
                last_claim_time=ts,
                rarity=rarity,
                stake_tx_hash=event.ctx.tx_hash,
            )
        )
        await self._record(store, event, StakingType.STAKE, args.user, args.token_id, None)
        await store.merge_staking_stats(args.user, StakingStatsDelta(last_updated=ts, total_staked=1))

    async def _handle_claimed(self, store: StateStore, event: DecodedEvent) -> None:
        args: RewardClaimedArgs = event.args  # type: ignore[assignment]
        ts = event.ctx.block_timestamp

        stake = await store.active_stake(args.user, args.token_id)
        if stake is None:
            raise MissingRelatedEntity("ActiveStake", stake_id(args.user, args.token_id))

        stake.last_claim_time = ts
        await self._record(store, event, StakingType.CLAIM, args.user, args.token_id, args.amount)
        await store.merge_staking_stats(args.user, StakingStatsDelta(last_updated=ts, reward=args.amount))

    async def _handle_unstaked(self, store: StateStore, event: DecodedEvent) -> None:
        args: UnstakedArgs = event.args  # type: ignore[assignment]
        ts = event.ctx.block_timestamp

        stake = await store.active_stake(args.user, args.token_id)
        if stake is None:
            raise MissingRelatedEntity("ActiveStake", stake_id(args.user, args.token_id))

        await store.remove_active_stake(stake)
        await self._record(store, event, StakingType.UNSTAKE, args.user, args.token_id, args.amount)
        await store.merge_staking_stats(
            args.user, StakingStatsDelta(last_updated=ts, total_staked=-1, reward=args.amount)
        )

    @staticmethod
    async def _nft_stream_before(store: StateStore, block_number: int) -> bool:
        """True when the NFT stream has not yet applied anything from ``block_number`` on."""
        checkpoint = await store.checkpoint(ContractName.NFT.value)
        return checkpoint is None or checkpoint.last_block < block_number

    @staticmethod
    async def _record(
        store: StateStore,
        event: DecodedEvent,
        kind: StakingType,
        user: str,
        token_id: int,
        amount: int | None,
    ) -> None:
        await store.append(
            StakingEvent(
                id=event.ctx.event_id,
                type=kind.value,
                user=user,
                token_id=token_id,
                amount=amount,
                timestamp=event.ctx.block_timestamp,
                block_number=event.ctx.block_number,
                tx_hash=event.ctx.tx_hash,
            )
        )
        logger.debug("staking_event", type=kind.value, user=user, token_id=token_id, amount=amount)
