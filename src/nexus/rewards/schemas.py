"""Pydantic request/response models for reward endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Achievements ---


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    icon: str
    requirement_type: str
    requirement_value: int
    credit_reward: int


class AchievementListResponse(BaseModel):
    achievements: list[AchievementResponse]


class EarnedAchievementResponse(BaseModel):
    achievement_id: str
    name: str
    icon: str
    credit_reward: int
    earned_at: datetime


class UserAchievementsResponse(BaseModel):
    earned: list[EarnedAchievementResponse]
    total_available: int
    total_earned: int


class AwardedAchievementResponse(BaseModel):
    achievement_id: str
    name: str
    credit_reward: int
    earned_at: datetime


class EvaluateResponse(BaseModel):
    awarded: list[AwardedAchievementResponse]
    credits_awarded: int


# --- Referrals ---


class ReferralEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    referred_id: str
    signup_bonus_awarded: bool
    task_bonus_awarded: bool
    created_at: datetime | None = None


class ReferralOverviewResponse(BaseModel):
    referral_code: str
    referrals: list[ReferralEntry]
    total_referrals: int
    total_earned: int


class ClaimReferralRequest(BaseModel):
    referral_code: str = Field(..., min_length=4, max_length=16)


class ClaimReferralResponse(BaseModel):
    referrer_id: str
    created: bool
    signup_bonus: str


# --- Daily login ---


class DailyLoginResponse(BaseModel):
    credits_awarded: int
    new_streak: int
    streak_broken: bool
    already_granted: bool
