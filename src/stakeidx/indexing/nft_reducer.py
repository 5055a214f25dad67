"""StakableNFT lifecycle reducer.

Per token: Unminted -> Minted(unrevealed) -> Minted(revealed). Ownership is
tracked independently of reveal status and follows every Transfer,
including transfers into and out of the staking pool.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from stakeidx.db.models import MintEvent, RevealEvent, Token
from stakeidx.errors import DuplicateMint, MissingRelatedEntity, OwnershipMismatch
from stakeidx.events.schemas import (
    ZERO_ADDRESS,
    DecodedEvent,
    EventName,
    NFTMintedArgs,
    RevealCompletedArgs,
    TransferArgs,
)
from stakeidx.indexing.locks import GLOBAL_KEY, token_key, user_key
from stakeidx.indexing.reveal import RevealResolver
from stakeidx.indexing.store import GlobalStatsDelta, StateStore, UserStatsDelta

logger = structlog.get_logger(__name__)

NFT_HANDLERS: dict[EventName, str] = {
    EventName.NFT_MINTED: "_handle_minted",
    EventName.TRANSFER: "_handle_transfer",
    EventName.RARITY_POOL_SET: "_handle_rarity_pool_set",
    EventName.REVEAL_COMPLETED: "_handle_reveal",
}


class NFTReducer:
    """Folds StakableNFT mint/transfer/reveal events into derived state."""

    handles = frozenset(NFT_HANDLERS)

    def __init__(self, resolver: RevealResolver) -> None:
        self.resolver = resolver

    def lock_keys(self, event: DecodedEvent) -> Iterable[str] | None:
        """Entity keys written by ``event``; ``None`` means every key (reveal)."""
        args = event.args
        if isinstance(args, NFTMintedArgs):
            keys = [user_key(args.to), GLOBAL_KEY]
            keys.extend(token_key(args.start_token_id + i) for i in range(args.quantity))
            return keys
        if isinstance(args, TransferArgs):
            return [token_key(args.token_id), user_key(args.from_), user_key(args.to)]
        if event.name == EventName.REVEAL_COMPLETED:
            return None
        return [GLOBAL_KEY]

    async def apply(self, store: StateStore, event: DecodedEvent) -> None:
        handler = getattr(self, NFT_HANDLERS[event.name])
        await handler(store, event)

    async def _handle_minted(self, store: StateStore, event: DecodedEvent) -> None:
        args: NFTMintedArgs = event.args  # type: ignore[assignment]
        ts = event.ctx.block_timestamp

        tokens = []
        for i in range(args.quantity):
            token_id = args.start_token_id + i
            if await store.token(token_id) is not None:
                msg = f"Token {token_id} already minted"
                raise DuplicateMint(msg)
            tokens.append(
                Token(
                    id=str(token_id),
                    token_id=token_id,
                    owner=args.to,
                    rarity=None,
                    is_revealed=False,
                    minted_at=ts,
                    minted_by=args.to,
                )
            )
        await store.add_tokens(tokens)

        await store.append(
            MintEvent(
                id=event.ctx.event_id,
                to=args.to,
                start_token_id=args.start_token_id,
                quantity=args.quantity,
                timestamp=ts,
                block_number=event.ctx.block_number,
                tx_hash=event.ctx.tx_hash,
            )
        )
        await store.merge_user_stats(
            args.to, UserStatsDelta(total_minted=args.quantity, current_balance=args.quantity)
        )
        await store.merge_global_stats(GlobalStatsDelta(total_minted=args.quantity))

        logger.debug("nft_minted", to=args.to, start=args.start_token_id, quantity=args.quantity)

    async def _handle_transfer(self, store: StateStore, event: DecodedEvent) -> None:
        args: TransferArgs = event.args  # type: ignore[assignment]
        # Mints are indexed from NFTMinted
        if args.from_ == ZERO_ADDRESS:
            return

        token = await store.token(args.token_id)
        if token is None:
            raise MissingRelatedEntity("Token", str(args.token_id))
        if await store.user_stats(args.from_) is None:
            raise MissingRelatedEntity("UserStats", args.from_)
        if token.owner != args.from_:
            raise OwnershipMismatch(f"Token {args.token_id} owned by {token.owner}, transferred from {args.from_}")

        token.owner = args.to
        await store.merge_user_stats(args.from_, UserStatsDelta(current_balance=-1, total_transferred=1))
        await store.merge_user_stats(args.to, UserStatsDelta(current_balance=1))

        logger.debug("nft_transferred", token_id=args.token_id, frm=args.from_, to=args.to)

    async def _handle_rarity_pool_set(self, store: StateStore, event: DecodedEvent) -> None:
        await store.merge_global_stats(GlobalStatsDelta(rarity_pool_set=True))

    async def _handle_reveal(self, store: StateStore, event: DecodedEvent) -> None:
        args: RevealCompletedArgs = event.args  # type: ignore[assignment]
        await self.resolver.resolve(store, args.offset)
        await store.append(
            RevealEvent(
                id=event.ctx.tx_hash,
                offset=args.offset,
                timestamp=event.ctx.block_timestamp,
                block_number=event.ctx.block_number,
                tx_hash=event.ctx.tx_hash,
            )
        )
