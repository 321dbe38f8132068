"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from nexus.config import get_settings
from nexus.database import close_db, get_session_factory, init_db
from nexus.health.router import router as health_router
from nexus.ledger.router import router as ledger_router
from nexus.middleware import setup_middleware
from nexus.redis_client import close_redis, init_redis
from nexus.rewards.router import router as rewards_router
from nexus.rewards.seed import seed_achievements
from nexus.tasks.router import router as tasks_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed the achievement catalog (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_achievements(db)
    except Exception:
        logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Nexus Credits Ledger API",
        description="Credit balances, task metering and rewards for the Nexus game studio",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ledger_router)
    app.include_router(tasks_router)
    app.include_router(rewards_router)

    return app


app = create_app()
