"""Pending-reward calculation for staked NFTs.

Reproduces the staking pool's ``calculatePendingReward``:

    reward = elapsed_seconds * BASE_REWARD_PER_SECOND * multiplier / 10000

in integer wei arithmetic throughout, so the off-chain estimate matches
the on-chain amount exactly for the same inputs. Unrevealed tokens (no
rarity) accrue nothing. Missing or malformed inputs yield 0 rather than an
exception, since this runs in a display refresh loop.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from stakeidx.rarity import MULTIPLIER_BASE, RARITY_MULTIPLIERS, to_rarity

SECONDS_PER_DAY = 86_400

# Pool constant: 1e18 / 86400, truncated
BASE_REWARD_PER_SECOND = 11_574_074_074_074
BASE_DAILY_RATE = BASE_REWARD_PER_SECOND * SECONDS_PER_DAY

TOKEN_DECIMALS = 18


class StakeLike(Protocol):
    last_claim_time: int | None
    rarity: int | None


def reward_multiplier(rarity: int | None) -> int:
    """Basis-point multiplier for a rarity; 0 when unset or unknown."""
    parsed = to_rarity(rarity)
    if parsed is None:
        return 0
    return RARITY_MULTIPLIERS[parsed]


def pending_reward(last_claim_time: int | None, rarity: int | None, now: int | None) -> int:
    """Reward accrued since ``last_claim_time`` as of ``now`` (unix seconds), in wei."""
    if last_claim_time is None or now is None:
        return 0
    multiplier = reward_multiplier(rarity)
    if multiplier == 0:
        return 0
    try:
        elapsed = max(0, int(now) - int(last_claim_time))
    except (TypeError, ValueError):
        return 0
    return elapsed * BASE_REWARD_PER_SECOND * multiplier // MULTIPLIER_BASE


def batch_pending_rewards(stakes: Iterable[StakeLike], now: int | None) -> list[int]:
    """Pending reward per stake, in input order."""
    return [pending_reward(s.last_claim_time, s.rarity, now) for s in stakes]


def total_pending_reward(stakes: Iterable[StakeLike], now: int | None) -> int:
    """Sum of pending rewards over a set of stakes."""
    return sum(batch_pending_rewards(stakes, now))


def daily_reward(rarity: int | None) -> int:
    """Wei accrued per full day at a rarity's multiplier."""
    return BASE_DAILY_RATE * reward_multiplier(rarity) // MULTIPLIER_BASE


def format_reward(amount: int, decimals: int = 4) -> str:
    """Format a wei amount as a token string truncated to ``decimals`` places.

    >>> format_reward(1_500_000_000_000_000_000)
    '1.5000'
    """
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(int(amount)), 10**TOKEN_DECIMALS)
    if decimals <= 0:
        return f"{sign}{whole}"
    frac_digits = str(frac).rjust(TOKEN_DECIMALS, "0")[:decimals].ljust(decimals, "0")
    return f"{sign}{whole}.{frac_digits}"
