"""Event indexer: decode -> order check -> reducer -> durable state.

Architecture:
  chain log source (per contract, ordered) --> Indexer.consume()
                                                 |-> decode_event (router)
                                                 |-> high-water mark check
                                                 |-> reducer (one DB transaction)
                                                 |-> checkpoint advance (same transaction)

Each contract stream is consumed by a single task, strictly in
(block, logIndex) order. Streams of different contracts may run
concurrently; entity-key locks serialize writes that touch the same keys.
An ``IndexingFault`` rolls back the event's transaction and halts that
contract's stream until an operator intervenes.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Mapping
from enum import Enum
from typing import Any, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stakeidx.errors import DuplicateEvent, IndexingFault, UnrecognizedEvent
from stakeidx.events.schemas import ContractName, DecodedEvent, EventName, RawLog, decode_event
from stakeidx.indexing.access_reducer import AccessControlReducer
from stakeidx.indexing.locks import GLOBAL_KEY, KeyedLocks
from stakeidx.indexing.nft_reducer import NFTReducer
from stakeidx.indexing.reveal import RevealResolver
from stakeidx.indexing.staking_reducer import StakingReducer
from stakeidx.indexing.store import StateStore

logger = structlog.get_logger(__name__)


class Reducer(Protocol):
    handles: frozenset[EventName]

    def lock_keys(self, event: DecodedEvent) -> Any: ...

    async def apply(self, store: StateStore, event: DecodedEvent) -> None: ...


class ApplyOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNRECOGNIZED = "unrecognized"


class StreamHalted(Exception):
    """Raised when applying to a contract stream halted by an earlier fault."""

    def __init__(self, contract: str, fault: IndexingFault) -> None:
        super().__init__(f"{contract} stream halted: {fault}")
        self.contract = contract
        self.fault = fault


class Indexer:
    """Applies contract events to the derived state store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        reducers: Mapping[ContractName, list[Reducer]],
        locks: KeyedLocks | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks or KeyedLocks()
        self._routes: dict[tuple[ContractName, EventName], Reducer] = {}
        for contract, contract_reducers in reducers.items():
            for reducer in contract_reducers:
                for name in reducer.handles:
                    self._routes[(contract, name)] = reducer
        self.halted: dict[str, IndexingFault] = {}
        self._events_applied = 0
        self._events_duplicate = 0
        self._events_unrecognized = 0

    async def apply(self, raw: RawLog | dict[str, Any]) -> ApplyOutcome:
        """Apply one log atomically; replays and unknown events are skipped."""
        try:
            event = decode_event(raw)
        except UnrecognizedEvent as e:
            self._events_unrecognized += 1
            logger.warning("unrecognized_event", contract=e.contract, event_name=e.event)
            await self._skip_unrecognized(e.contract, raw)
            return ApplyOutcome.UNRECOGNIZED

        contract = event.contract.value
        if contract in self.halted:
            raise StreamHalted(contract, self.halted[contract])

        reducer = self._routes.get((event.contract, event.name))
        if reducer is None:
            self._events_unrecognized += 1
            logger.warning("unrouted_event", contract=contract, event_name=event.name.value)
            return ApplyOutcome.UNRECOGNIZED

        position = (event.ctx.block_number, event.ctx.log_index)
        mark: tuple[int, int] | None = None
        try:
            async with self._locks.hold(reducer.lock_keys(event)):
                async with self._session_factory() as session, session.begin():
                    store = StateStore(session)
                    checkpoint = await store.checkpoint(contract)
                    if checkpoint is not None:
                        mark = (checkpoint.last_block, checkpoint.last_log_index)
                        if position <= mark:
                            raise DuplicateEvent(event.ctx.event_id)
                    await reducer.apply(store, event)
                    await store.advance_checkpoint(contract, *position)
        except DuplicateEvent:
            self._events_duplicate += 1
            if mark is not None and position[0] < mark[0]:
                # Sources resume at the checkpoint block; an older block means misordered delivery
                logger.warning(
                    "out_of_order_event",
                    contract=contract,
                    event_id=event.ctx.event_id,
                    position=list(position),
                    checkpoint=list(mark),
                )
            else:
                logger.debug("duplicate_event", contract=contract, event_id=event.ctx.event_id)
            return ApplyOutcome.DUPLICATE

        self._events_applied += 1
        logger.debug(
            "event_applied",
            contract=contract,
            event_name=event.name.value,
            block=event.ctx.block_number,
            log_index=event.ctx.log_index,
        )
        return ApplyOutcome.APPLIED

    async def _skip_unrecognized(self, contract: str, raw: RawLog | dict[str, Any]) -> None:
        """Move a known contract's checkpoint past an event it does not understand."""
        if contract not in {c.value for c in ContractName} or contract in self.halted:
            return
        log = raw if isinstance(raw, RawLog) else RawLog.model_validate(raw)
        async with self._locks.hold([GLOBAL_KEY]):
            async with self._session_factory() as session, session.begin():
                store = StateStore(session)
                checkpoint = await store.checkpoint(contract)
                if checkpoint is None or log.position > (checkpoint.last_block, checkpoint.last_log_index):
                    await store.advance_checkpoint(contract, *log.position)

    async def consume(self, contract: str, logs: AsyncIterable[RawLog | dict[str, Any]]) -> None:
        """Sequentially apply one contract's ordered log stream until exhausted or halted."""
        logger.info("stream_started", contract=contract)
        async for raw in logs:
            try:
                await self.apply(raw)
            except IndexingFault as fault:
                self.halted[contract] = fault
                logger.error(
                    "stream_halted",
                    contract=contract,
                    fault=type(fault).__name__,
                    error=str(fault),
                )
                return
            except StreamHalted:
                return

            if self._events_applied and self._events_applied % 1000 == 0:
                logger.info("indexer_stats", **self.stats)
        logger.info("stream_finished", contract=contract, **self.stats)

    async def run(self, streams: Mapping[str, AsyncIterable[RawLog | dict[str, Any]]]) -> None:
        """Consume several contracts' streams concurrently."""
        await asyncio.gather(*(self.consume(contract, logs) for contract, logs in streams.items()))

    async def resume_block(self, contract: str, start_block: int) -> int:
        """Block to resume polling from: the checkpoint block, or ``start_block``."""
        async with self._session_factory() as session:
            checkpoint = await StateStore(session).checkpoint(contract)
        if checkpoint is None:
            return start_block
        # Re-read the checkpoint block; already applied logs are skipped as duplicates
        return max(start_block, checkpoint.last_block)

    @property
    def stats(self) -> dict[str, int]:
        """Return indexer statistics."""
        return {
            "applied": self._events_applied,
            "duplicate": self._events_duplicate,
            "unrecognized": self._events_unrecognized,
            "halted": len(self.halted),
        }


def default_reducers(resolver: RevealResolver, pool_address: str = "") -> dict[ContractName, list[Reducer]]:
    """Reducer families for the StakableNFT and NFTStakingPool contracts."""
    return {
        ContractName.NFT: [NFTReducer(resolver), AccessControlReducer()],
        ContractName.STAKING_POOL: [StakingReducer(pool_address)],
    }
