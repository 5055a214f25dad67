from stakeidx.rewards.calculator import (
    BASE_DAILY_RATE,
    BASE_REWARD_PER_SECOND,
    SECONDS_PER_DAY,
    batch_pending_rewards,
    daily_reward,
    format_reward,
    pending_reward,
    reward_multiplier,
    total_pending_reward,
)
from stakeidx.rewards.ticker import ChainClock, ClockFeed, RewardSnapshot, RewardTicker

__all__ = [
    "BASE_DAILY_RATE",
    "BASE_REWARD_PER_SECOND",
    "SECONDS_PER_DAY",
    "ChainClock",
    "ClockFeed",
    "RewardSnapshot",
    "RewardTicker",
    "batch_pending_rewards",
    "daily_reward",
    "format_reward",
    "pending_reward",
    "reward_multiplier",
    "total_pending_reward",
]
