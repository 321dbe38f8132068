"""Daily login bonus: one grant per user per server-side calendar day."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.config import get_settings
from nexus.db.dialect import insert_for
from nexus.db.models import DailyLoginReset, Profile
from nexus.db.transaction import atomic
from nexus.ledger import store
from nexus.ledger.events import publish_balance_update
from nexus.rewards.referrals import ensure_profile
from nexus.rewards.streak import StreakKind, calculate_streak, reward_for_streak, today_in_zone

logger = logging.getLogger(__name__)

REASON_DAILY_LOGIN = "daily_login"


@dataclass(slots=True)
class DailyLoginResult:
    credits_awarded: int
    new_streak: int
    streak_broken: bool = False
    already_granted: bool = False


async def _recorded_amount(db: AsyncSession, user_id: str, day: date) -> int | None:
    return await db.scalar(
        select(DailyLoginReset.credits_awarded).where(
            DailyLoginReset.user_id == user_id,
            DailyLoginReset.reset_date == day,
        )
    )


async def _current_streak(db: AsyncSession, user_id: str) -> tuple[int, date | None]:
    row = (
        await db.execute(
            select(Profile.login_streak, Profile.last_login_date).where(Profile.id == user_id)
        )
    ).one_or_none()
    if row is None:
        return 0, None
    return int(row.login_streak or 0), row.last_login_date


async def handle_daily_login(
    db: AsyncSession,
    user_id: str,
    today: date | None = None,
    reward_table: list[tuple[int, int]] | None = None,
    redis: object = None,
) -> DailyLoginResult:
    """Grant today's login bonus and advance the user's streak.

    Re-entry on the same day returns the amount recorded for that day with
    already_granted=True and writes nothing.
    """
    if today is None:
        today = today_in_zone(get_settings().ledger_timezone)

    current_streak, last_login = await _current_streak(db, user_id)

    recorded = await _recorded_amount(db, user_id, today)
    if recorded is not None:
        return DailyLoginResult(credits_awarded=recorded, new_streak=current_streak, already_granted=True)

    decision = calculate_streak(last_login, today, current_streak)
    if decision.kind is StreakKind.SAME_DAY:
        return DailyLoginResult(credits_awarded=0, new_streak=decision.new_streak, already_granted=True)

    amount = reward_for_streak(decision.new_streak, reward_table)
    now = datetime.now(timezone.utc)
    balance: int | None = None

    async with atomic(db):
        await ensure_profile(db, user_id)
        reset_id = await db.scalar(
            insert_for(db, DailyLoginReset)
            .values(user_id=user_id, reset_date=today, credits_awarded=amount, created_at=now)
            .on_conflict_do_nothing(index_elements=["user_id", "reset_date"])
            .returning(DailyLoginReset.id)
        )
        if reset_id is not None:
            if amount > 0:
                balance = await store.credit(db, user_id, amount, REASON_DAILY_LOGIN)
            await db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(
                    login_streak=decision.new_streak,
                    last_login_date=today,
                    last_streak_reward_date=today,
                    total_logins=Profile.total_logins + 1,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )

    if reset_id is None:
        # A concurrent request recorded today's grant first.
        winner_streak, _ = await _current_streak(db, user_id)
        return DailyLoginResult(
            credits_awarded=await _recorded_amount(db, user_id, today) or 0,
            new_streak=winner_streak,
            already_granted=True,
        )

    logger.info(
        "Daily login for %s on %s: streak %d (%s), +%d",
        user_id, today, decision.new_streak, decision.kind.value, amount,
    )
    if balance is not None:
        await publish_balance_update(redis, user_id, balance, REASON_DAILY_LOGIN)
    return DailyLoginResult(
        credits_awarded=amount,
        new_streak=decision.new_streak,
        streak_broken=decision.streak_broken,
    )
