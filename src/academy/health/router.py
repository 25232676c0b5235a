"""Health, readiness and version endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from academy.config import get_settings
from academy.database import get_session
from academy.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: database, Redis and campaign automation."""
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    redis = get_redis()
    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    automation = getattr(request.app.state, "automation", None)
    running = automation.running_campaign_ids if automation is not None else []

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {
        "status": "ready" if all_ok else "degraded",
        "checks": checks,
        "scheduled_campaigns": running,
    }


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
