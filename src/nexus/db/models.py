"""ORM models for the credits and rewards ledger.

Uniqueness and non-negativity live in the schema, so every idempotency
guard in the service layer is a store-level write rather than a prior read.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nexus.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class Profile(Base):
    """Per-user login and referral fields. `id` is the platform user id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_login_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_streak_reward_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_logins: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    referral_code: Mapped[str | None] = mapped_column(String(16), unique=True, nullable=True)
    referred_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class AccountBalance(Base):
    """Current spendable balance, one row per user."""

    __tablename__ = "credits"
    __table_args__ = (CheckConstraint("amount >= 0", name="credits_amount_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class LedgerEntry(Base):
    """Immutable balance change. Positive amount = earn, negative = spend."""

    __tablename__ = "credits_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="credits_transactions_amount_non_zero"),
        CheckConstraint("type IN ('earn', 'spend')", name="credits_transactions_type_check"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    reason: Mapped[str] = mapped_column(String(128), nullable=False)
    task_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


# ---------------------------------------------------------------------------
# Task metering
# ---------------------------------------------------------------------------


class Task(Base):
    """One billable unit of work. `credits_deducted` is the charge-once flag."""

    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("credits_cost >= 0", name="tasks_credits_cost_non_negative"),
        CheckConstraint("status IN ('pending', 'completed', 'failed')", name="tasks_status_check"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    credits_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    credits_deducted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    credits_refunded: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    input_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Rewards: achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Static achievement catalog row, seeded on startup."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(32), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    credit_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UserAchievement(Base):
    """Achievements earned by users. UNIQUE(user_id, achievement_id) prevents double awards."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(String(64), ForeignKey("achievements.id"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    achievement: Mapped[Achievement] = relationship("Achievement", lazy="joined")


# ---------------------------------------------------------------------------
# Rewards: referrals and daily login
# ---------------------------------------------------------------------------


class Referral(Base):
    """Referrer/referred pair. Each bonus flag flips at most once."""

    __tablename__ = "referrals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    referred_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    referral_code: Mapped[str] = mapped_column(String(16), nullable=False)
    signup_bonus_awarded: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    task_bonus_awarded: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DailyLoginReset(Base):
    """One row per user per day a login bonus was granted."""

    __tablename__ = "daily_credit_resets"
    __table_args__ = (
        UniqueConstraint("user_id", "reset_date", name="daily_credit_resets_user_id_reset_date_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reset_date: Mapped[date] = mapped_column(Date, nullable=False)
    credits_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
