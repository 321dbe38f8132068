"""Achievement catalog seed data."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from nexus.db.dialect import insert_for
from nexus.db.models import Achievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Logins
    {
        "id": "first_login",
        "name": "Welcome Aboard",
        "description": "Log in for the first time",
        "icon": "door-open",
        "requirement_type": "total_logins",
        "requirement_value": 1,
        "credit_reward": 5,
        "sort_order": 1,
    },
    {
        "id": "logins_30",
        "name": "Regular",
        "description": "Log in on 30 different days",
        "icon": "calendar",
        "requirement_type": "total_logins",
        "requirement_value": 30,
        "credit_reward": 30,
        "sort_order": 2,
    },
    # Streaks
    {
        "id": "streak_3",
        "name": "On a Roll",
        "description": "Keep a 3-day login streak",
        "icon": "flame",
        "requirement_type": "login_streak",
        "requirement_value": 3,
        "credit_reward": 10,
        "sort_order": 3,
    },
    {
        "id": "streak_7",
        "name": "Week Warrior",
        "description": "Keep a 7-day login streak",
        "icon": "flame",
        "requirement_type": "login_streak",
        "requirement_value": 7,
        "credit_reward": 25,
        "sort_order": 4,
    },
    {
        "id": "streak_30",
        "name": "Unstoppable",
        "description": "Keep a 30-day login streak",
        "icon": "trophy",
        "requirement_type": "login_streak",
        "requirement_value": 30,
        "credit_reward": 100,
        "sort_order": 5,
    },
    # Creation
    {
        "id": "first_task",
        "name": "First Build",
        "description": "Complete your first generation task",
        "icon": "hammer",
        "requirement_type": "tasks_completed",
        "requirement_value": 1,
        "credit_reward": 5,
        "sort_order": 6,
    },
    {
        "id": "tasks_25",
        "name": "Game Maker",
        "description": "Complete 25 generation tasks",
        "icon": "gamepad",
        "requirement_type": "tasks_completed",
        "requirement_value": 25,
        "credit_reward": 25,
        "sort_order": 7,
    },
    {
        "id": "tasks_100",
        "name": "Studio Veteran",
        "description": "Complete 100 generation tasks",
        "icon": "rocket",
        "requirement_type": "tasks_completed",
        "requirement_value": 100,
        "credit_reward": 75,
        "sort_order": 8,
    },
    {
        "id": "spent_100",
        "name": "Big Spender",
        "description": "Spend 100 credits on generations",
        "icon": "coins",
        "requirement_type": "credits_spent",
        "requirement_value": 100,
        "credit_reward": 20,
        "sort_order": 9,
    },
    # Social
    {
        "id": "first_referral",
        "name": "Recruiter",
        "description": "Invite a friend who signs up with your code",
        "icon": "users",
        "requirement_type": "referrals",
        "requirement_value": 1,
        "credit_reward": 10,
        "sort_order": 10,
    },
    {
        "id": "referrals_5",
        "name": "Community Builder",
        "description": "Invite five friends who sign up with your code",
        "icon": "users",
        "requirement_type": "referrals",
        "requirement_value": 5,
        "credit_reward": 50,
        "sort_order": 11,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert the achievement catalog. Returns number of rows seeded."""
    now = datetime.now(timezone.utc)
    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert_for(db, Achievement).values(**data, created_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
                "requirement_type": stmt.excluded.requirement_type,
                "requirement_value": stmt.excluded.requirement_value,
                "credit_reward": stmt.excluded.credit_reward,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievements", seeded)
    return seeded
