"""Read API over the indexed NFT and staking state."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stakeidx.dependencies import address_path, get_chain_clock, get_db, normalize_address
from stakeidx.indexing.staking_reducer import StakingType
from stakeidx.query import schemas, service
from stakeidx.rewards.ticker import ChainClock

router = APIRouter(prefix="/api/v1", tags=["Query"])


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
@router.get("/tokens/{token_id}", response_model=schemas.TokenResponse)
async def get_token(
    token_id: int,
    db: AsyncSession = Depends(get_db),
) -> schemas.TokenResponse:
    """Get a single NFT by token id."""
    result = await service.get_token(db, token_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Token not found")
    return result


@router.get("/tokens", response_model=schemas.TokenPage)
async def list_tokens(
    owner: str | None = Query(None),
    revealed: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> schemas.TokenPage:
    """List NFTs ordered by token id."""
    if owner is not None:
        owner = normalize_address(owner)
    return await service.list_tokens(db, owner=owner, revealed=revealed, limit=limit, offset=offset)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@router.get("/users/{address}/stats", response_model=schemas.UserStatsResponse)
async def get_user_stats(
    address: str = Depends(address_path),
    db: AsyncSession = Depends(get_db),
) -> schemas.UserStatsResponse:
    return await service.get_user_stats(db, address)


@router.get("/users/{address}/stakes", response_model=schemas.ActiveStakesResponse)
async def get_user_stakes(
    address: str = Depends(address_path),
    db: AsyncSession = Depends(get_db),
    clock: ChainClock = Depends(get_chain_clock),
) -> schemas.ActiveStakesResponse:
    """Active stakes with pending rewards at the current chain time."""
    return await service.get_active_stakes(db, address, clock.now())


@router.get("/users/{address}/staking-stats", response_model=schemas.StakingStatsResponse)
async def get_user_staking_stats(
    address: str = Depends(address_path),
    db: AsyncSession = Depends(get_db),
) -> schemas.StakingStatsResponse:
    return await service.get_staking_stats(db, address)


# ---------------------------------------------------------------------------
# Staking history
# ---------------------------------------------------------------------------
@router.get("/staking-events", response_model=list[schemas.StakingEventResponse])
async def list_staking_events(
    user: str | None = Query(None),
    type: StakingType | None = Query(None),  # noqa: A002
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.StakingEventResponse]:
    """Staking events, newest first."""
    if user is not None:
        user = normalize_address(user)
    return await service.list_staking_events(
        db, user=user, event_type=type.value if type else None, limit=limit
    )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------
@router.get("/stats/global", response_model=schemas.GlobalStatsResponse)
async def get_global_stats(db: AsyncSession = Depends(get_db)) -> schemas.GlobalStatsResponse:
    return await service.get_global_stats(db)


@router.get("/mints", response_model=list[schemas.MintEventResponse])
async def list_mints(
    to: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.MintEventResponse]:
    if to is not None:
        to = normalize_address(to)
    return await service.list_mints(db, to=to, limit=limit)


@router.get("/roles", response_model=list[schemas.RoleEventResponse])
async def list_roles(
    account: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.RoleEventResponse]:
    """Role grant and revoke history."""
    if account is not None:
        account = normalize_address(account)
    return await service.list_roles(db, account=account, limit=limit)
