"""Async SQLAlchemy engine and session management for the ledger database."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

_NOT_INITIALIZED = "Ledger database not initialized. Call init_db() first."


def _engine_options(url: str) -> dict[str, Any]:
    """Pool settings per driver. asyncpg gets a sized pool, SQLite a lock timeout."""
    if url.startswith("postgresql+asyncpg"):
        return {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "connect_args": {"statement_cache_size": 0},
        }
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": 5}}
    return {"pool_pre_ping": True}


async def init_db(url: str) -> None:
    """Create the engine and the session factory used by every request."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_async_engine(url, echo=False, **_engine_options(url))
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work outside a request, e.g. startup seeding."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session per request (FastAPI dependency)."""
    async with get_session_factory()() as session:
        yield session
