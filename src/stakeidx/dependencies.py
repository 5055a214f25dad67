"""Shared FastAPI dependencies."""

from collections.abc import Awaitable, Callable

from fastapi import HTTPException, Path
from web3 import Web3

from stakeidx.database import get_session as _get_session
from stakeidx.database import get_session_factory
from stakeidx.query import service
from stakeidx.query.schemas import ActiveStakeResponse
from stakeidx.rewards.ticker import ChainClock

get_db = _get_session

StakeLoader = Callable[[str], Awaitable[list[ActiveStakeResponse]]]

_clock = ChainClock()


def get_chain_clock() -> ChainClock:
    """Process-wide chain clock, fed by the ClockFeed started in the app lifespan."""
    return _clock


async def _load_stakes(address: str) -> list[ActiveStakeResponse]:
    # Short-lived session: a stream connection outlives any single request
    async with get_session_factory()() as db:
        return await service.load_active_stakes(db, address)


def get_stake_loader() -> StakeLoader:
    return _load_stakes


def normalize_address(value: str) -> str:
    """Lower-cased hex address; 400 for anything that is not an address."""
    if not Web3.is_address(value):
        raise HTTPException(status_code=400, detail=f"Invalid address: {value}")
    return value.lower()


def address_path(address: str = Path(..., description="0x-prefixed account address")) -> str:
    return normalize_address(address)
