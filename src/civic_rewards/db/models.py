"""ORM models for the rewards engine.

``events`` and ``user_profiles`` belong to the event directory and identity
services; the engine maps them read-only. Every other table is owned here.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from civic_rewards.db.base import Base, BigIntId, JSONType

# ---------------------------------------------------------------------------
# Collaborator-owned (read-only)
# ---------------------------------------------------------------------------


class Event(Base):
    """Check-in target published by the event directory."""

    __tablename__ = "events"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    secret_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="active")
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)


class UserProfile(Base):
    """Public profile attributes mirrored from the identity service."""

    __tablename__ = "user_profiles"
    __table_args__ = {"extend_existing": True}  # noqa: RUF012

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class PointTransaction(Base):
    """Immutable, append-only point transaction."""

    __tablename__ = "point_transactions"
    __table_args__ = (
        Index("ix_point_transactions_user_created", "user_id", "created_at"),
        Index("ix_point_transactions_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(256), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class UnlockedAchievement(Base):
    """Achievements earned by users: UNIQUE(user_id, achievement_id) makes unlocking idempotent."""

    __tablename__ = "unlocked_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_unlocked_achievements_user_achievement"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    catalog_version: Mapped[str] = mapped_column(String(32), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UserEngagementStats(Base):
    """Denormalized per-user counters: single row per user, O(1) requirement reads."""

    __tablename__ = "user_engagement_stats"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    quiz_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    checkin_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ai_conversation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    logged_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    best_quiz_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


class Goal(Base):
    """Periodic user goal: one per (user, goal type, window)."""

    __tablename__ = "user_goals"
    __table_args__ = (
        UniqueConstraint("user_id", "goal_type", "period_start", name="uq_user_goals_user_type_period"),
        Index("ix_user_goals_status_period_end", "status", "period_end"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    goal_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_value: Mapped[int] = mapped_column(Integer, nullable=False)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Check-ins
# ---------------------------------------------------------------------------


class CheckIn(Base):
    """Recorded attendance: UNIQUE(user_id, event_id)."""

    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_checkins_user_event"),
        Index("ix_checkins_event", "event_id"),
        Index("ix_checkins_checked_in_at", "checked_in_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    distance_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    checked_in_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EventAttendance(Base):
    """Per-event admission counter, incremented only by a conditional UPDATE."""

    __tablename__ = "event_attendance"

    event_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    checkin_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class RewardOutbox(Base):
    """Validated facts whose reward step is still owed."""

    __tablename__ = "reward_outbox"
    __table_args__ = (
        UniqueConstraint("kind", "reference_id", name="uq_reward_outbox_kind_reference"),
        Index("ix_reward_outbox_status", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
