"""Advisory affordability check for UI gating.

The answer may be stale by the time the caller acts on it. The only
authoritative check is the conditional UPDATE inside `store.debit`.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from nexus.ledger.store import get_balance


async def can_afford(db: AsyncSession, user_id: str, cost: int) -> bool:
    """Return True if the user's current balance covers `cost`."""
    if cost <= 0:
        return True
    return await get_balance(db, user_id) >= cost
