"""Best-effort balance change notifications over Redis pub/sub."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

CREDITS_CHANNEL = "pubsub:credits_update"


async def publish_balance_update(redis: object, user_id: str, balance: int, reason: str) -> None:
    """Publish a committed balance change so open clients can refresh."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            CREDITS_CHANNEL,
            json.dumps({
                "user_id": user_id,
                "balance": balance,
                "reason": reason,
            }),
        )
    except Exception:
        logger.warning("Failed to publish credits_update for user %s", user_id, exc_info=True)
