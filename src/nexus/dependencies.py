"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from nexus.redis_client import get_redis_or_none


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client (or None) as a FastAPI dependency."""
    yield get_redis_or_none()
