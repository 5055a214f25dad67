"""Rarity reveal resolution.

On ``RevealCompleted(offset)`` every minted token ``t`` receives the rarity
stored at ``(t - 1 + offset) % max_supply`` in the contract's rarity pool.
The pool is fixed once ``RarityPoolSet`` has fired, so reads are cached and
the distinct indexes are fetched in one batched call instead of one chain
round-trip per token.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from stakeidx.db.models import GlobalStats
from stakeidx.errors import DuplicateReveal, ExternalReadFailure, MalformedEvent, MissingRelatedEntity
from stakeidx.indexing.store import GlobalStatsDelta, StateStore
from stakeidx.rarity import Rarity, to_rarity

logger = structlog.get_logger(__name__)


class RarityPoolReader(Protocol):
    """Point reads against the deployed rarity pool array."""

    async def read_many(self, indexes: list[int]) -> dict[int, int]:
        """Return ``{index: raw rarity value}`` for every requested index."""
        ...


class Web3RarityPoolReader:
    """Reads ``rarityPool(uint256)`` through web3 with caching and retries."""

    def __init__(
        self,
        contract: Any,
        batch_size: int = 25,
        max_retries: int = 5,
        backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 8.0,
    ) -> None:
        self._contract = contract
        self._batch_size = max(1, batch_size)
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._max_backoff = max_backoff_seconds
        self._cache: dict[int, int] = {}

    async def read_many(self, indexes: list[int]) -> dict[int, int]:
        missing = sorted({i for i in indexes if i not in self._cache})
        for start in range(0, len(missing), self._batch_size):
            chunk = missing[start : start + self._batch_size]
            values = await asyncio.gather(*(self._read_with_retry(i) for i in chunk))
            self._cache.update(zip(chunk, values))
        return {i: self._cache[i] for i in indexes}

    async def _read_with_retry(self, index: int) -> int:
        delay = self._backoff
        for attempt in range(1, self._max_retries + 1):
            try:
                return int(await self._contract.functions.rarityPool(index).call())
            except Exception as e:
                if attempt == self._max_retries:
                    msg = f"rarityPool({index}) failed after {attempt} attempts: {e}"
                    raise ExternalReadFailure(msg) from e
                logger.warning("rarity_pool_read_failed", index=index, attempt=attempt, retry_in=delay, error=str(e))
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_backoff)
        msg = f"rarityPool({index}) not attempted (max_retries={self._max_retries})"
        raise ExternalReadFailure(msg)


@dataclass
class RarityCounts:
    """Per-class counts accumulated during one reveal."""

    counts: dict[Rarity, int] = field(default_factory=lambda: dict.fromkeys(Rarity, 0))

    def add(self, rarity: Rarity) -> None:
        self.counts[rarity] += 1

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def rarity_index(token_id: int, offset: int, max_supply: int) -> int:
    """Pool index holding the rarity of ``token_id`` for a given reveal offset."""
    return (token_id - 1 + offset) % max_supply


class RevealResolver:
    """Assigns rarities to all minted tokens exactly once."""

    def __init__(self, reader: RarityPoolReader, max_supply: int) -> None:
        if max_supply < 1:
            msg = "max_supply must be >= 1"
            raise ValueError(msg)
        self.reader = reader
        self.max_supply = max_supply

    async def resolve(self, store: StateStore, offset: int) -> RarityCounts:
        """Reveal every token in [1, totalMinted] and update GlobalStats in one step."""
        stats = await store.global_stats()
        if stats is not None and stats.total_revealed:
            msg = f"Rarity pool already revealed with offset {stats.reveal_offset}"
            raise DuplicateReveal(msg)

        total_minted = stats.total_minted if stats is not None else 0
        tokens = await store.tokens_up_to(total_minted)
        if len(tokens) != total_minted:
            known = {t.token_id for t in tokens}
            missing = next(t for t in range(1, total_minted + 1) if t not in known)
            raise MissingRelatedEntity("Token", str(missing))

        index_of = {t.token_id: rarity_index(t.token_id, offset, self.max_supply) for t in tokens}
        pool = await self.reader.read_many(sorted(set(index_of.values())))

        counts = RarityCounts()
        for token in tokens:
            raw = pool[index_of[token.token_id]]
            rarity = to_rarity(raw)
            if rarity is None:
                msg = f"rarityPool[{index_of[token.token_id]}] holds invalid value {raw!r}"
                raise MalformedEvent(msg)
            token.rarity = int(rarity)
            token.is_revealed = True
            counts.add(rarity)

        if stats is None:
            stats = await store.merge_global_stats(GlobalStatsDelta())
        _write_reveal(stats, offset, counts)
        await store.session.flush()

        logger.info(
            "reveal_resolved",
            offset=offset,
            total=counts.total,
            common=counts.counts[Rarity.COMMON],
            rare=counts.counts[Rarity.RARE],
            epic=counts.counts[Rarity.EPIC],
            legendary=counts.counts[Rarity.LEGENDARY],
        )
        return counts


def _write_reveal(stats: GlobalStats, offset: int, counts: RarityCounts) -> None:
    stats.total_revealed = True
    stats.reveal_offset = offset
    stats.common_count = counts.counts[Rarity.COMMON]
    stats.rare_count = counts.counts[Rarity.RARE]
    stats.epic_count = counts.counts[Rarity.EPIC]
    stats.legendary_count = counts.counts[Rarity.LEGENDARY]
