"""Reward endpoints: achievements, referrals and the daily login bonus."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.auth.dependencies import get_current_user_id
from nexus.database import get_session
from nexus.dependencies import get_redis_dep
from nexus.rewards import achievements, referrals
from nexus.rewards.daily_login import handle_daily_login
from nexus.rewards.schemas import (
    AchievementListResponse,
    AchievementResponse,
    AwardedAchievementResponse,
    ClaimReferralRequest,
    ClaimReferralResponse,
    DailyLoginResponse,
    EarnedAchievementResponse,
    EvaluateResponse,
    ReferralEntry,
    ReferralOverviewResponse,
    UserAchievementsResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Rewards"])


# ── Achievements ──


@router.get("/achievements", response_model=AchievementListResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """Active achievement catalog."""
    catalog = await achievements.list_achievements(db)
    return AchievementListResponse(
        achievements=[AchievementResponse.model_validate(a) for a in catalog]
    )


@router.get("/users/me/achievements", response_model=UserAchievementsResponse)
async def get_my_achievements(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    earned = await achievements.list_user_achievements(db, user_id)
    catalog = await achievements.list_achievements(db)
    return UserAchievementsResponse(
        earned=[
            EarnedAchievementResponse(
                achievement_id=ua.achievement_id,
                name=ua.achievement.name,
                icon=ua.achievement.icon,
                credit_reward=ua.achievement.credit_reward,
                earned_at=ua.earned_at,
            )
            for ua in earned
        ],
        total_available=len(catalog),
        total_earned=len(earned),
    )


@router.post("/achievements/evaluate", response_model=EvaluateResponse)
async def evaluate_my_achievements(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Award any achievements the caller has newly unlocked."""
    awarded = await achievements.evaluate_achievements(db, user_id, redis=redis)
    return EvaluateResponse(
        awarded=[
            AwardedAchievementResponse(
                achievement_id=a.achievement_id,
                name=a.name,
                credit_reward=a.credit_reward,
                earned_at=a.earned_at,
            )
            for a in awarded
        ],
        credits_awarded=sum(a.credit_reward for a in awarded),
    )


# ── Referrals ──


@router.get("/referrals/me", response_model=ReferralOverviewResponse)
async def get_my_referrals(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Caller's referral code (assigned on first call) and referred users."""
    await referrals.ensure_referral_code(db, user_id)
    overview = await referrals.get_referral_overview(db, user_id)
    return ReferralOverviewResponse(
        referral_code=overview.referral_code,
        referrals=[ReferralEntry.model_validate(r) for r in overview.referrals],
        total_referrals=len(overview.referrals),
        total_earned=overview.total_earned,
    )


@router.post("/referrals/claim", response_model=ClaimReferralResponse)
async def claim_referral(
    body: ClaimReferralRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Register the caller as referred by the code's owner and pay the signup bonus."""
    registration = await referrals.register_referral(db, user_id, body.referral_code)
    bonus = await referrals.award_signup_bonus(db, user_id, redis=redis)
    return ClaimReferralResponse(
        referrer_id=registration.referral.referrer_id,
        created=registration.created,
        signup_bonus=bonus.outcome.value,
    )


# ── Daily login ──


@router.post("/daily-login", response_model=DailyLoginResponse)
async def daily_login(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Grant today's login bonus. The day is always computed server-side."""
    result = await handle_daily_login(db, user_id, redis=redis)
    return DailyLoginResponse(
        credits_awarded=result.credits_awarded,
        new_streak=result.new_streak,
        streak_broken=result.streak_broken,
        already_granted=result.already_granted,
    )
