"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.config import get_settings
from nexus.database import get_session
from nexus.dependencies import get_redis_dep

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: object = Depends(get_redis_dep),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe. The ledger needs its database; Redis only feeds live updates."""
    checks: dict[str, object] = {}

    try:
        await db.scalar(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()  # type: ignore[attr-defined]
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    ready = checks["database"] == "ok" and checks["redis"] in ("ok", "disabled")
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return service version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
