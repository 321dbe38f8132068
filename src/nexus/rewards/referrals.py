"""Referral registration and one-shot referrer bonuses."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.config import get_settings
from nexus.db.dialect import insert_for
from nexus.db.models import DailyLoginReset, Profile, Referral, Task
from nexus.db.transaction import atomic
from nexus.ledger import store
from nexus.ledger.events import publish_balance_update
from nexus.ledger.exceptions import ReferralError
from nexus.rewards.referral_codes import generate_referral_code, normalize_referral_code

logger = logging.getLogger(__name__)

REASON_SIGNUP = "referral:signup"
REASON_FIRST_TASK = "referral:first_task"


class ReferralOutcome(str, enum.Enum):
    AWARDED = "awarded"
    ALREADY_AWARDED = "already_awarded"
    NO_REFERRAL = "no_referral"


@dataclass(slots=True)
class BonusResult:
    outcome: ReferralOutcome
    referrer_id: str | None = None
    credits_awarded: int = 0


@dataclass(slots=True)
class RegistrationResult:
    referral: Referral
    created: bool


@dataclass(slots=True)
class ReferralOverview:
    referral_code: str | None
    referrals: list[Referral] = field(default_factory=list)
    total_earned: int = 0


async def ensure_profile(db: AsyncSession, user_id: str) -> None:
    now = datetime.now(timezone.utc)
    await db.execute(
        insert_for(db, Profile)
        .values(id=user_id, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=["id"])
    )


async def _code_for(db: AsyncSession, user_id: str) -> str | None:
    return await db.scalar(select(Profile.referral_code).where(Profile.id == user_id))


async def ensure_referral_code(
    db: AsyncSession,
    user_id: str,
    generate: Callable[[], str] = generate_referral_code,
) -> str:
    """Return the user's referral code, assigning one on first use."""
    existing = await _code_for(db, user_id)
    if existing:
        return existing

    async with atomic(db):
        await ensure_profile(db, user_id)
        for _ in range(10):
            code = normalize_referral_code(generate())
            taken = await db.scalar(select(Profile.id).where(Profile.referral_code == code))
            if taken is not None:
                continue
            await db.execute(
                update(Profile)
                .where(Profile.id == user_id, Profile.referral_code.is_(None))
                .values(referral_code=code, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            break
        else:
            raise RuntimeError("Failed to generate unique referral code after 10 attempts")

    # Another request may have assigned a code first; its value wins.
    return await _code_for(db, user_id)


async def _referral_of(db: AsyncSession, referred_id: str) -> Referral | None:
    return await db.scalar(
        select(Referral)
        .where(Referral.referred_id == referred_id)
        .execution_options(populate_existing=True)
    )


async def _has_activity(db: AsyncSession, user_id: str) -> bool:
    """True once the user has logged in, started a task or owns a referral code."""
    if await _code_for(db, user_id):
        return True
    login = await db.scalar(select(DailyLoginReset.id).where(DailyLoginReset.user_id == user_id).limit(1))
    if login is not None:
        return True
    task = await db.scalar(select(Task.id).where(Task.user_id == user_id).limit(1))
    return task is not None


async def register_referral(db: AsyncSession, referred_id: str, referral_code: str) -> RegistrationResult:
    """Link `referred_id` to the owner of `referral_code`.

    A user can be referred once; registering again returns the existing row
    with created=False. Only a fresh account can be referred: a user who
    already logged in, started a task or owns a referral code is rejected,
    as is a user trying to refer back the account that referred them.
    """
    code = normalize_referral_code(referral_code)
    referrer_id = await db.scalar(select(Profile.id).where(Profile.referral_code == code))
    if referrer_id is None:
        raise ReferralError("Unknown referral code")
    if referrer_id == referred_id:
        raise ReferralError("You cannot use your own referral code")

    existing = await _referral_of(db, referred_id)
    if existing is not None:
        return RegistrationResult(referral=existing, created=False)

    referrer_referred_by = await db.scalar(select(Profile.referred_by).where(Profile.id == referrer_id))
    if referrer_referred_by == referred_id:
        raise ReferralError("You cannot use the code of a user you referred")
    if await _has_activity(db, referred_id):
        raise ReferralError("Referral codes can only be claimed by new accounts")

    now = datetime.now(timezone.utc)
    async with atomic(db):
        await ensure_profile(db, referred_id)
        inserted_id = await db.scalar(
            insert_for(db, Referral)
            .values(
                referrer_id=referrer_id,
                referred_id=referred_id,
                referral_code=code,
                created_at=now,
            )
            .on_conflict_do_nothing(index_elements=["referred_id"])
            .returning(Referral.id)
        )
        if inserted_id is not None:
            await db.execute(
                update(Profile)
                .where(Profile.id == referred_id, Profile.referred_by.is_(None))
                .values(referred_by=referrer_id, updated_at=now)
                .execution_options(synchronize_session=False)
            )

    referral = await _referral_of(db, referred_id)
    if inserted_id is not None:
        logger.info("Referral registered: %s referred by %s", referred_id, referrer_id)
    return RegistrationResult(referral=referral, created=inserted_id is not None)


async def _award(
    db: AsyncSession,
    redis: object,
    referred_id: str,
    flag: str,
    amount: int,
    reason: str,
) -> BonusResult:
    column = getattr(Referral, flag)
    balance: int | None = None
    async with atomic(db):
        referrer_id = await db.scalar(
            update(Referral)
            .where(Referral.referred_id == referred_id, column.is_(False))
            .values({flag: True})
            .returning(Referral.referrer_id)
            .execution_options(synchronize_session=False)
        )
        if referrer_id is None:
            exists = await db.scalar(select(Referral.id).where(Referral.referred_id == referred_id))
            outcome = ReferralOutcome.ALREADY_AWARDED if exists else ReferralOutcome.NO_REFERRAL
        else:
            outcome = ReferralOutcome.AWARDED
            if amount > 0:
                balance = await store.credit(db, referrer_id, amount, reason)

    if outcome is not ReferralOutcome.AWARDED:
        return BonusResult(outcome=outcome)

    logger.info("Referral bonus %s: +%d to %s (referred %s)", reason, amount, referrer_id, referred_id)
    if balance is not None:
        await publish_balance_update(redis, referrer_id, balance, reason)
    return BonusResult(outcome=outcome, referrer_id=referrer_id, credits_awarded=amount)


async def award_signup_bonus(
    db: AsyncSession, referred_id: str, redis: object = None, amount: int | None = None
) -> BonusResult:
    """Pay the referrer once when the referred user completes signup."""
    if amount is None:
        amount = get_settings().referral_signup_bonus
    return await _award(db, redis, referred_id, "signup_bonus_awarded", amount, REASON_SIGNUP)


async def award_first_task_bonus(
    db: AsyncSession, referred_id: str, redis: object = None, amount: int | None = None
) -> BonusResult:
    """Pay the referrer once when the referred user completes a first task."""
    if amount is None:
        amount = get_settings().referral_first_task_bonus
    return await _award(db, redis, referred_id, "task_bonus_awarded", amount, REASON_FIRST_TASK)


async def get_referral_overview(db: AsyncSession, referrer_id: str) -> ReferralOverview:
    """Referral code, referred users and total referral credits for a referrer."""
    result = await db.execute(
        select(Referral)
        .where(Referral.referrer_id == referrer_id)
        .order_by(Referral.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return ReferralOverview(
        referral_code=await _code_for(db, referrer_id),
        referrals=list(result.scalars().all()),
        total_earned=await store.sum_entries(db, referrer_id, reason_prefix="referral:"),
    )
