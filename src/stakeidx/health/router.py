"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from stakeidx.config import get_settings
from stakeidx.db.models import IndexerCheckpoint
from stakeidx.dependencies import get_chain_clock, get_db
from stakeidx.rewards.ticker import ChainClock

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_db),  # noqa: B008
    clock: ChainClock = Depends(get_chain_clock),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks the state store and chain clock, reports indexing progress."""
    checks: dict[str, object] = {}
    checkpoints: dict[str, dict[str, int]] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
        result = await db.execute(select(IndexerCheckpoint))
        for row in result.scalars().all():
            checkpoints[row.id] = {"block": row.last_block, "log_index": row.last_log_index}
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    checks["chain_clock"] = "ok" if clock.synced else "not synced"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks, "checkpoints": checkpoints}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
