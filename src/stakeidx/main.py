"""FastAPI application factory for the read API."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from stakeidx.chain.client import close_web3, create_web3
from stakeidx.config import get_settings
from stakeidx.database import close_db, init_db
from stakeidx.dependencies import get_chain_clock
from stakeidx.health.router import router as health_router
from stakeidx.logconfig import setup_logging
from stakeidx.middleware import setup_middleware
from stakeidx.query.router import router as query_router
from stakeidx.rewards.ticker import ClockFeed
from stakeidx.ws.router import router as ws_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)

    w3 = create_web3(settings.rpc_url)

    async def head_timestamp() -> int:
        block = await w3.eth.get_block("latest")
        return int(block["timestamp"])

    feed = ClockFeed(get_chain_clock(), head_timestamp, interval=settings.chain_clock_refresh_seconds)
    await feed.start()
    logger.info("api_started", version=settings.app_version, rpc_url=settings.rpc_url)

    yield

    await feed.stop()
    await close_web3(w3)
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Stakable NFT Indexer API",
        description="Read API over indexed NFT ownership, rarity and staking state",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(query_router)
    app.include_router(ws_router, tags=["WebSocket"])

    return app


def run() -> None:
    """Serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run("stakeidx.main:create_app", factory=True, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
