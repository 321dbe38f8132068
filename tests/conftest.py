"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

TEST_JWT_SECRET = "nexus-test-secret-with-at-least-32-bytes"

os.environ["NEXUS_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["NEXUS_LOG_FORMAT"] = "console"
os.environ["NEXUS_ENVIRONMENT"] = "test"

from nexus.config import get_settings  # noqa: E402

get_settings.cache_clear()

from nexus.database import get_session  # noqa: E402
from nexus.db import models  # noqa: E402, F401
from nexus.db.base import Base  # noqa: E402
from nexus.dependencies import get_redis_dep  # noqa: E402
from nexus.main import create_app  # noqa: E402


def make_token(user_id: str, *, expires_in: int = 3600, **claims: object) -> str:
    """Sign a token the way the platform auth provider does."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, object] = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "role": "authenticated",
    }
    payload.update(claims)
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Factory for bearer headers: auth_headers("user-1")."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite database so concurrent sessions use separate connections."""
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 5},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(db_session: AsyncSession) -> AsyncSession:
    """db_session with the achievement catalog seeded."""
    from nexus.rewards.seed import seed_achievements

    await seed_achievements(db_session)
    return db_session


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app with sessions bound to the test database."""
    app = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _redis_override() -> AsyncGenerator[object, None]:
        yield None

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_redis_dep] = _redis_override

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
