"""Read-side queries over the derived tables."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stakeidx.db.models import (
    GLOBAL_STATS_ID,
    ActiveStake,
    GlobalStats,
    MintEvent,
    RoleEvent,
    StakingEvent,
    StakingStats,
    Token,
    UserStats,
)
from stakeidx.query.schemas import (
    ActiveStakeResponse,
    ActiveStakesResponse,
    GlobalStatsResponse,
    MintEventResponse,
    RoleEventResponse,
    StakingEventResponse,
    StakingStatsResponse,
    TokenPage,
    TokenResponse,
    UserStatsResponse,
)
from stakeidx.rarity import to_rarity
from stakeidx.rewards.calculator import batch_pending_rewards, format_reward


def _token_response(token: Token) -> TokenResponse:
    response = TokenResponse.model_validate(token)
    rarity = to_rarity(token.rarity)
    response.rarity_name = rarity.name.title() if rarity is not None else None
    return response


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


async def get_token(db: AsyncSession, token_id: int) -> TokenResponse | None:
    token = await db.get(Token, str(token_id))
    return _token_response(token) if token else None


async def list_tokens(
    db: AsyncSession,
    owner: str | None = None,
    revealed: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> TokenPage:
    """Tokens ordered by token id, optionally filtered by owner and reveal state."""
    filters = []
    if owner is not None:
        filters.append(Token.owner == owner)
    if revealed is not None:
        filters.append(Token.is_revealed == revealed)

    total = (await db.execute(select(func.count()).select_from(Token).where(*filters))).scalar_one()
    result = await db.execute(select(Token).where(*filters).order_by(Token.token_id).limit(limit).offset(offset))
    return TokenPage(
        tokens=[_token_response(t) for t in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


async def get_user_stats(db: AsyncSession, address: str) -> UserStatsResponse:
    """Counters for an address; zeros when it has never been seen."""
    row = await db.get(UserStats, address)
    if row is None:
        return UserStatsResponse(id=address)
    return UserStatsResponse.model_validate(row)


async def get_global_stats(db: AsyncSession) -> GlobalStatsResponse:
    row = await db.get(GlobalStats, GLOBAL_STATS_ID)
    if row is None:
        return GlobalStatsResponse()
    return GlobalStatsResponse.model_validate(row)


# ---------------------------------------------------------------------------
# Staking
# ---------------------------------------------------------------------------


async def load_active_stakes(db: AsyncSession, user: str) -> list[ActiveStakeResponse]:
    """Active stakes of ``user`` in token id order, without rewards.

    Stakes made before the reveal carry no rarity of their own; the token's
    revealed rarity is used for them.
    """
    result = await db.execute(
        select(ActiveStake, Token.rarity)
        .outerjoin(Token, Token.token_id == ActiveStake.token_id)
        .where(ActiveStake.user == user)
        .order_by(ActiveStake.token_id)
    )

    stakes = []
    for stake, token_rarity in result.all():
        item = ActiveStakeResponse.model_validate(stake)
        if item.rarity is None:
            item.rarity = token_rarity
        stakes.append(item)
    return stakes


def with_pending_rewards(stakes: list[ActiveStakeResponse], rewards: list[int], now: int | None) -> ActiveStakesResponse:
    """Attach one tick's rewards (in ``stakes`` order) to the stakes."""
    for item, reward in zip(stakes, rewards, strict=True):
        item.pending_reward = reward
        item.pending_reward_formatted = format_reward(reward)
    return ActiveStakesResponse(stakes=stakes, total_pending_reward=sum(rewards), now=now)


async def get_active_stakes(db: AsyncSession, user: str, now: int | None) -> ActiveStakesResponse:
    """Active stakes of ``user`` with pending rewards as of chain time ``now``."""
    stakes = await load_active_stakes(db, user)
    return with_pending_rewards(stakes, batch_pending_rewards(stakes, now), now)


async def get_staking_stats(db: AsyncSession, user: str) -> StakingStatsResponse:
    row = await db.get(StakingStats, user)
    if row is None:
        return StakingStatsResponse(id=user)
    return StakingStatsResponse.model_validate(row)


async def list_staking_events(
    db: AsyncSession,
    user: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[StakingEventResponse]:
    """Staking history, newest first."""
    query = select(StakingEvent)
    if user is not None:
        query = query.where(StakingEvent.user == user)
    if event_type is not None:
        query = query.where(StakingEvent.type == event_type)
    query = query.order_by(StakingEvent.timestamp.desc(), StakingEvent.block_number.desc()).limit(limit)

    result = await db.execute(query)
    return [StakingEventResponse.model_validate(row) for row in result.scalars().all()]


# ---------------------------------------------------------------------------
# Audit rows
# ---------------------------------------------------------------------------


async def list_mints(db: AsyncSession, to: str | None = None, limit: int = 50) -> list[MintEventResponse]:
    query = select(MintEvent)
    if to is not None:
        query = query.where(MintEvent.to == to)
    result = await db.execute(query.order_by(MintEvent.block_number.desc()).limit(limit))
    return [MintEventResponse.model_validate(row) for row in result.scalars().all()]


async def list_roles(db: AsyncSession, account: str | None = None, limit: int = 50) -> list[RoleEventResponse]:
    query = select(RoleEvent)
    if account is not None:
        query = query.where(RoleEvent.account == account)
    result = await db.execute(query.order_by(RoleEvent.block_number.desc()).limit(limit))
    return [RoleEventResponse.model_validate(row) for row in result.scalars().all()]
