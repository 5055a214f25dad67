"""Health endpoint tests."""

import pytest
from httpx import AsyncClient

from helpers import ALICE, NFT


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness_before_clock_sync(client: AsyncClient) -> None:
    """GET /ready reports degraded until a block timestamp has been observed."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"] == {"database": "ok", "chain_clock": "not synced"}
    assert data["checkpoints"] == {}


@pytest.mark.asyncio
async def test_readiness_reports_checkpoints(client: AsyncClient, indexer, chain, chain_clock) -> None:
    """GET /ready is ready once synced and lists per-contract progress."""
    await indexer.apply(chain.minted(ALICE, 1, 1))
    chain_clock.observe(chain.timestamp)

    data = (await client.get("/ready")).json()
    assert data["status"] == "ready"
    assert data["checkpoints"] == {NFT: {"block": chain.block, "log_index": 0}}


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    """GET /version returns version and environment."""
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "0.1.0"
    assert "environment" in data
