"""User activity stats that achievement requirements are compared against."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.db.models import LedgerEntry, Profile, Referral, Task

# Requirement types understood by the default provider.
TOTAL_LOGINS = "total_logins"
LOGIN_STREAK = "login_streak"
TASKS_COMPLETED = "tasks_completed"
CREDITS_SPENT = "credits_spent"
REFERRALS = "referrals"

REQUIREMENT_TYPES = (TOTAL_LOGINS, LOGIN_STREAK, TASKS_COMPLETED, CREDITS_SPENT, REFERRALS)

StatsProvider = Callable[[AsyncSession, str], Awaitable[dict[str, int]]]


async def collect_user_stats(db: AsyncSession, user_id: str) -> dict[str, int]:
    """Default stats provider backed by the ledger tables."""
    profile_row = (
        await db.execute(
            select(Profile.total_logins, Profile.login_streak).where(Profile.id == user_id)
        )
    ).one_or_none()
    total_logins, login_streak = profile_row if profile_row is not None else (0, 0)

    tasks_completed = await db.scalar(
        select(func.count(Task.id)).where(Task.user_id == user_id, Task.status == "completed")
    )
    credits_spent = await db.scalar(
        select(func.coalesce(func.sum(-LedgerEntry.amount), 0)).where(
            LedgerEntry.user_id == user_id, LedgerEntry.type == "spend"
        )
    )
    referrals = await db.scalar(
        select(func.count(Referral.id)).where(Referral.referrer_id == user_id)
    )

    return {
        TOTAL_LOGINS: int(total_logins or 0),
        LOGIN_STREAK: int(login_streak or 0),
        TASKS_COMPLETED: int(tasks_completed or 0),
        CREDITS_SPENT: int(credits_spent or 0),
        REFERRALS: int(referrals or 0),
    }
