"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, TypeVar

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from stakeidx.database import close_db, create_schema, get_session_factory, init_db
from stakeidx.db.base import Base
from stakeidx.dependencies import get_chain_clock
from stakeidx.indexing.indexer import Indexer, default_reducers
from stakeidx.indexing.reveal import RevealResolver
from stakeidx.main import create_app
from stakeidx.rewards.ticker import ChainClock

from helpers import DEFAULT_POOL, MAX_SUPPLY, POOL, ChainBuilder, FakePoolReader

ModelT = TypeVar("ModelT", bound=Base)


@pytest.fixture
def chain() -> ChainBuilder:
    return ChainBuilder()


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncGenerator[None, None]:
    """Fresh SQLite state store per test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'stakeidx.db'}")
    await create_schema()
    yield
    await close_db()


@pytest.fixture
def pool_reader() -> FakePoolReader:
    return FakePoolReader(list(DEFAULT_POOL))


@pytest_asyncio.fixture
async def indexer(db: None, pool_reader: FakePoolReader) -> Indexer:
    resolver = RevealResolver(pool_reader, max_supply=MAX_SUPPLY)
    return Indexer(get_session_factory(), default_reducers(resolver, pool_address=POOL))


@pytest.fixture
def fetch(db: None) -> Callable[[type[ModelT], Any], Awaitable[ModelT | None]]:
    """Point lookup in a fresh session."""

    async def _fetch(model: type[ModelT], key: Any) -> ModelT | None:
        async with get_session_factory()() as session:
            return await session.get(model, key)

    return _fetch


@pytest.fixture
def fetch_all(db: None) -> Callable[..., Awaitable[list[Any]]]:
    """All rows of a model in a fresh session, optionally filtered."""

    async def _fetch_all(model: type[ModelT], *where: Any) -> list[ModelT]:
        async with get_session_factory()() as session:
            result = await session.execute(select(model).where(*where))
            return list(result.scalars().all())

    return _fetch_all


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def chain_clock(monotonic: FakeMonotonic) -> ChainClock:
    return ChainClock(monotonic=monotonic)


@pytest_asyncio.fixture
async def client(db: None, chain_clock: ChainClock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the read API, sharing the test state store."""
    app = create_app()
    app.dependency_overrides[get_chain_clock] = lambda: chain_clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
