"""Credits ledger and rewards tables.

Creates profiles, credits, tasks, credits_transactions, achievements,
user_achievements, referrals and daily_credit_resets. Every idempotency
guard used by the service layer is a constraint declared here.

Revision ID: 001_ledger_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_ledger_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(64) PRIMARY KEY,
            login_streak INTEGER NOT NULL DEFAULT 0,
            last_login_date DATE,
            last_streak_reward_date DATE,
            total_logins INTEGER NOT NULL DEFAULT 0,
            referral_code VARCHAR(16) UNIQUE,
            referred_by VARCHAR(64),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # --- Account balances ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS credits (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) UNIQUE NOT NULL,
            amount INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT credits_amount_non_negative CHECK (amount >= 0)
        )
    """)

    # --- Tasks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            type VARCHAR(64) NOT NULL,
            credits_cost INTEGER NOT NULL,
            credits_deducted BOOLEAN NOT NULL DEFAULT false,
            credits_refunded BOOLEAN NOT NULL DEFAULT false,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            error_message TEXT,
            input_data JSON,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            CONSTRAINT tasks_credits_cost_non_negative CHECK (credits_cost >= 0),
            CONSTRAINT tasks_status_check CHECK (status IN ('pending', 'completed', 'failed'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_tasks_user_id
        ON tasks(user_id)
    """)

    # --- Ledger entries (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS credits_transactions (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            amount INTEGER NOT NULL,
            type VARCHAR(8) NOT NULL,
            reason VARCHAR(128) NOT NULL,
            task_id VARCHAR(36) REFERENCES tasks(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT credits_transactions_amount_non_zero CHECK (amount <> 0),
            CONSTRAINT credits_transactions_type_check CHECK (type IN ('earn', 'spend'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_credits_transactions_user_id
        ON credits_transactions(user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_credits_transactions_task_id
        ON credits_transactions(task_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_credits_transactions_created_at
        ON credits_transactions(created_at DESC)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64) NOT NULL,
            requirement_type VARCHAR(32) NOT NULL,
            requirement_value INTEGER NOT NULL,
            credit_reward INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            achievement_id VARCHAR(64) NOT NULL REFERENCES achievements(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id
        ON user_achievements(user_id)
    """)

    # --- Referrals ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS referrals (
            id VARCHAR(36) PRIMARY KEY,
            referrer_id VARCHAR(64) NOT NULL,
            referred_id VARCHAR(64) UNIQUE NOT NULL,
            referral_code VARCHAR(16) NOT NULL,
            signup_bonus_awarded BOOLEAN NOT NULL DEFAULT false,
            task_bonus_awarded BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_referrals_referrer_id
        ON referrals(referrer_id)
    """)

    # --- Daily login bonus ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_credit_resets (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            reset_date DATE NOT NULL,
            credits_awarded INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT daily_credit_resets_user_id_reset_date_key UNIQUE (user_id, reset_date)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS daily_credit_resets CASCADE")
    op.execute("DROP TABLE IF EXISTS referrals CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS credits_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS tasks CASCADE")
    op.execute("DROP TABLE IF EXISTS credits CASCADE")
    op.execute("DROP TABLE IF EXISTS profiles CASCADE")
