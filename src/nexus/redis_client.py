"""Redis client used for balance notifications and rate limiting.

Redis is optional for the ledger: with an empty URL no client is created,
pub/sub notifications are skipped and requests are not rate limited.
"""

import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    global _client  # noqa: PLW0603
    if not url:
        logger.info("No Redis URL configured; live balance updates disabled")
        _client = None
        return
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
    _client = None


def get_redis() -> redis.Redis:
    """Return the client. Raises RuntimeError when Redis is not configured."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client


def get_redis_or_none() -> redis.Redis | None:
    """Return the client, or None when Redis is not configured."""
    return _client
