"""Pydantic response schemas for the read API.

Wei amounts are serialized as decimal strings; they exceed the range
JSON consumers can represent exactly as numbers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_serializer


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenResponse(_ORMModel):
    """Single NFT."""

    id: str
    token_id: int
    owner: str
    rarity: int | None = None
    rarity_name: str | None = None
    is_revealed: bool
    minted_at: int
    minted_by: str


class TokenPage(BaseModel):
    """Response for GET /tokens."""

    tokens: list[TokenResponse]
    total: int
    limit: int
    offset: int


class UserStatsResponse(_ORMModel):
    id: str
    total_minted: int = 0
    current_balance: int = 0
    total_transferred: int = 0


class GlobalStatsResponse(_ORMModel):
    """Collection-wide counters."""

    total_minted: int = 0
    total_revealed: bool = False
    reveal_offset: int = 0
    rarity_pool_set: bool = False
    common_count: int = 0
    rare_count: int = 0
    epic_count: int = 0
    legendary_count: int = 0


# ---------------------------------------------------------------------------
# Staking
# ---------------------------------------------------------------------------


class ActiveStakeResponse(_ORMModel):
    """An active stake with its live pending reward."""

    id: str
    user: str
    token_id: int
    staked_at: int
    last_claim_time: int
    rarity: int | None = None
    stake_tx_hash: str
    pending_reward: int = 0
    pending_reward_formatted: str = "0.0000"

    @field_serializer("pending_reward")
    def serialize_wei(self, value: int) -> str:
        return str(value)


class ActiveStakesResponse(BaseModel):
    """Response for GET /users/{address}/stakes."""

    stakes: list[ActiveStakeResponse]
    total_pending_reward: int = 0
    now: int | None = None

    @field_serializer("total_pending_reward")
    def serialize_wei(self, value: int) -> str:
        return str(value)


class StakingStatsResponse(_ORMModel):
    id: str
    total_staked: int = 0
    total_claimed: int = 0
    total_earned: int = 0
    last_updated: int | None = None

    @field_serializer("total_claimed", "total_earned")
    def serialize_wei(self, value: int) -> str:
        return str(value)


class StakingEventResponse(_ORMModel):
    id: str
    type: str
    user: str
    token_id: int
    amount: int | None = None
    timestamp: int
    block_number: int
    tx_hash: str

    @field_serializer("amount")
    def serialize_wei(self, value: int | None) -> str | None:
        return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Audit rows
# ---------------------------------------------------------------------------


class MintEventResponse(_ORMModel):
    id: str
    to: str
    start_token_id: int
    quantity: int
    timestamp: int
    block_number: int
    tx_hash: str


class RoleEventResponse(_ORMModel):
    id: str
    event_type: str
    role: str
    account: str
    sender: str
    timestamp: int
    block_number: int
    tx_hash: str
