"""Chain-anchored clock and the periodic reward refresher.

The reference "now" for pending rewards is the last observed block
timestamp plus whole seconds elapsed locally since that observation, never
the local wall clock directly, so clock skew on the reader does not drift
the estimate away from the chain.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

import structlog

from stakeidx.rewards.calculator import StakeLike, batch_pending_rewards

logger = structlog.get_logger(__name__)


class ChainClock:
    """Estimates current chain time from one block timestamp observation."""

    def __init__(self, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._monotonic = monotonic
        self._chain_ts: int | None = None
        self._observed_at = 0.0

    def observe(self, block_timestamp: int) -> None:
        """Record a freshly fetched block timestamp."""
        self._chain_ts = int(block_timestamp)
        self._observed_at = self._monotonic()

    @property
    def synced(self) -> bool:
        return self._chain_ts is not None

    def now(self) -> int | None:
        """Estimated chain time, or None before the first observation."""
        if self._chain_ts is None:
            return None
        elapsed = max(0, int(self._monotonic() - self._observed_at))
        return self._chain_ts + elapsed


@dataclass(frozen=True)
class RewardSnapshot:
    """Rewards computed for one tick, in the order of ``stakes``."""

    now: int | None
    rewards: list[int]
    stakes: Sequence[StakeLike] = ()

    @property
    def total(self) -> int:
        return sum(self.rewards)


class RewardTicker:
    """Recomputes pending rewards for a set of stakes on a fixed interval."""

    def __init__(
        self,
        clock: ChainClock,
        stakes: Callable[[], Sequence[StakeLike]],
        on_tick: Callable[[RewardSnapshot], Awaitable[None] | None],
        interval: float = 1.0,
    ) -> None:
        self._clock = clock
        self._stakes = stakes
        self._on_tick = on_tick
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    def compute(self) -> RewardSnapshot:
        now = self._clock.now()
        stakes = list(self._stakes())
        return RewardSnapshot(now=now, rewards=batch_pending_rewards(stakes, now), stakes=stakes)

    async def start(self) -> None:
        """Start the background tick task."""
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            try:
                result = self._on_tick(self.compute())
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("reward_tick_failed")
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        """Stop the timer."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


class ClockFeed:
    """Keeps a ChainClock anchored by re-reading the head block timestamp."""

    def __init__(
        self,
        clock: ChainClock,
        fetch_timestamp: Callable[[], Awaitable[int]],
        interval: float = 1.0,
    ) -> None:
        self._clock = clock
        self._fetch = fetch_timestamp
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    async def refresh(self) -> None:
        self._clock.observe(await self._fetch())

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as e:
                # Keep extrapolating from the last observation
                logger.warning("chain_clock_refresh_failed", error=str(e))
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
