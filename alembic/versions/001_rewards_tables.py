"""Rewards engine tables.

Creates point_transactions, unlocked_achievements, user_engagement_stats,
user_goals, checkins, event_attendance and reward_outbox. The events and
user_profiles tables belong to the event directory and identity services
and are created here only when missing (local development).

Revision ID: 001_rewards_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_rewards_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Collaborator tables (read-only for this service) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            latitude DOUBLE PRECISION NOT NULL,
            longitude DOUBLE PRECISION NOT NULL,
            capacity INTEGER,
            secret_code VARCHAR(64),
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            city VARCHAR(100),
            state VARCHAR(100)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_profiles (
            user_id VARCHAR(64) PRIMARY KEY,
            display_name VARCHAR(100),
            city VARCHAR(100),
            state VARCHAR(100)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_profiles_city ON user_profiles(city)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_profiles_state ON user_profiles(state)")

    # --- Point Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS point_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            amount INTEGER NOT NULL,
            reason VARCHAR(256) NOT NULL,
            source VARCHAR(32) NOT NULL,
            metadata JSONB NOT NULL DEFAULT '{}',
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_point_transactions_user_created
        ON point_transactions(user_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_point_transactions_created
        ON point_transactions(created_at)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS unlocked_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            achievement_id VARCHAR(64) NOT NULL,
            catalog_version VARCHAR(32) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_unlocked_achievements_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_engagement_stats (
            user_id VARCHAR(64) PRIMARY KEY,
            quiz_count INTEGER NOT NULL DEFAULT 0,
            checkin_count INTEGER NOT NULL DEFAULT 0,
            ai_conversation_count INTEGER NOT NULL DEFAULT 0,
            registered BOOLEAN NOT NULL DEFAULT false,
            logged_in BOOLEAN NOT NULL DEFAULT false,
            best_quiz_score INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ
        )
    """)

    # --- Goals ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_goals (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            goal_type VARCHAR(32) NOT NULL,
            target_value INTEGER NOT NULL,
            current_value INTEGER NOT NULL DEFAULT 0,
            period_start DATE NOT NULL,
            period_end DATE NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            auto_generated BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            CONSTRAINT uq_user_goals_user_type_period UNIQUE (user_id, goal_type, period_start)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_goals_status_period_end
        ON user_goals(status, period_end)
    """)

    # --- Check-ins ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS checkins (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            event_id BIGINT NOT NULL,
            latitude DOUBLE PRECISION,
            longitude DOUBLE PRECISION,
            mode VARCHAR(16) NOT NULL,
            distance_m DOUBLE PRECISION,
            checked_in_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_checkins_user_event UNIQUE (user_id, event_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_checkins_event ON checkins(event_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_checkins_checked_in_at ON checkins(checked_in_at)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS event_attendance (
            event_id BIGINT PRIMARY KEY,
            checkin_count INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- Reward Outbox ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_outbox (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            kind VARCHAR(32) NOT NULL,
            reference_id VARCHAR(64) NOT NULL,
            payload JSONB NOT NULL DEFAULT '{}',
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            attempts INTEGER NOT NULL DEFAULT 0,
            last_error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            processed_at TIMESTAMPTZ,
            CONSTRAINT uq_reward_outbox_kind_reference UNIQUE (kind, reference_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_reward_outbox_status
        ON reward_outbox(status, created_at)
    """)


def downgrade() -> None:
    for table in [
        "reward_outbox",
        "event_attendance",
        "checkins",
        "user_goals",
        "user_engagement_stats",
        "unlocked_achievements",
        "point_transactions",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
