"""Achievement evaluation with duplicate prevention."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.db.dialect import insert_for
from nexus.db.models import Achievement, UserAchievement
from nexus.db.transaction import atomic
from nexus.ledger import store
from nexus.ledger.events import publish_balance_update
from nexus.rewards.stats import StatsProvider, collect_user_stats

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AwardedAchievement:
    achievement_id: str
    name: str
    credit_reward: int
    earned_at: datetime


async def list_achievements(db: AsyncSession) -> list[Achievement]:
    """Active achievement catalog in display order."""
    result = await db.execute(
        select(Achievement)
        .where(Achievement.is_active.is_(True))
        .order_by(Achievement.sort_order, Achievement.id)
    )
    return list(result.scalars().all())


async def list_user_achievements(db: AsyncSession, user_id: str) -> list[UserAchievement]:
    """Achievements the user has earned, newest first."""
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.earned_at.desc())
    )
    return list(result.unique().scalars().all())


def requirement_met(achievement: Achievement, stats: dict[str, int]) -> bool:
    value = stats.get(achievement.requirement_type)
    if value is None:
        return False
    return value >= achievement.requirement_value


async def _claim(db: AsyncSession, user_id: str, achievement_id: str, now: datetime) -> bool:
    """Insert the user achievement row. False if it already existed."""
    stmt = (
        insert_for(db, UserAchievement)
        .values(user_id=user_id, achievement_id=achievement_id, earned_at=now)
        .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
        .returning(UserAchievement.id)
    )
    return await db.scalar(stmt) is not None


async def evaluate_achievements(
    db: AsyncSession,
    user_id: str,
    stats_provider: StatsProvider | None = None,
    redis: object = None,
) -> list[AwardedAchievement]:
    """Award every active achievement whose requirement the user now meets.

    Each award is an INSERT ... ON CONFLICT DO NOTHING on user_achievements
    followed by the credit grant, so concurrent evaluations pay out once.
    Returns only the achievements newly awarded by this call.
    """
    provider = stats_provider or collect_user_stats
    catalog = await list_achievements(db)
    earned = {
        row
        for row in (
            await db.execute(
                select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
            )
        ).scalars()
    }
    pending = [a for a in catalog if a.id not in earned]
    if not pending:
        return []

    stats = await provider(db, user_id)

    eligible: list[Achievement] = []
    for achievement in pending:
        if achievement.requirement_type not in stats:
            logger.warning(
                "Unknown requirement type %r on achievement %s",
                achievement.requirement_type,
                achievement.id,
            )
            continue
        if requirement_met(achievement, stats):
            eligible.append(achievement)

    if not eligible:
        return []

    awarded: list[AwardedAchievement] = []
    balance: int | None = None
    now = datetime.now(timezone.utc)
    async with atomic(db):
        for achievement in eligible:
            if not await _claim(db, user_id, achievement.id, now):
                continue
            if achievement.credit_reward > 0:
                balance = await store.credit(
                    db, user_id, achievement.credit_reward, f"achievement:{achievement.id}"
                )
            awarded.append(AwardedAchievement(
                achievement_id=achievement.id,
                name=achievement.name,
                credit_reward=achievement.credit_reward,
                earned_at=now,
            ))

    for item in awarded:
        logger.info("Achievement %s awarded to %s (+%d)", item.achievement_id, user_id, item.credit_reward)
    if balance is not None:
        await publish_balance_update(redis, user_id, balance, "achievement")
    return awarded
