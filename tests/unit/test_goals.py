"""Goal tracker tests: windows, auto-provisioning, progress, lazy expiry."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from civic_rewards.db.models import Goal
from civic_rewards.errors import ConflictError, InvalidInputError
from civic_rewards.goals import service as goals
from civic_rewards.goals.periods import GoalMetric, GoalPeriod, GoalType, period_window, today_utc
from civic_rewards.ledger.service import PointSource, award


class TestPeriodWindows:
    def test_month_window(self):
        assert period_window(GoalPeriod.MONTH, date(2025, 2, 14)) == (date(2025, 2, 1), date(2025, 2, 28))

    def test_leap_february(self):
        assert period_window(GoalPeriod.MONTH, date(2024, 2, 29)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_week_starts_monday(self):
        # 2025-03-12 is a Wednesday
        assert period_window(GoalPeriod.WEEK, date(2025, 3, 12)) == (date(2025, 3, 10), date(2025, 3, 16))

    def test_sunday_belongs_to_preceding_week(self):
        assert period_window(GoalPeriod.WEEK, date(2025, 3, 16)) == (date(2025, 3, 10), date(2025, 3, 16))

    def test_goal_type_rules(self):
        assert GoalType.WEEKLY_POINTS.period is GoalPeriod.WEEK
        assert GoalType.MONTHLY_CHECKINS.metric is GoalMetric.CHECKINS


class TestAutoTarget:
    @pytest.mark.parametrize(("level", "target"), [(1, 500), (5, 500), (6, 600), (12, 1200)])
    def test_target_floor(self, level, target):
        assert goals.auto_target(level) == target


class TestAutoCreate:
    @pytest.mark.asyncio
    async def test_idempotent_within_window(self, db_session):
        first = await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, level=3)
        second = await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, level=9)
        await db_session.commit()

        assert first.id == second.id
        assert second.target_value == 500
        assert second.auto_generated is True
        assert second.status == goals.STATUS_ACTIVE

    @pytest.mark.asyncio
    async def test_window_matches_today(self, db_session):
        goal = await goals.auto_create_goal(db_session, "u1", GoalType.WEEKLY_POINTS, level=1)
        start, end = period_window(GoalPeriod.WEEK, today_utc())
        assert (goal.period_start, goal.period_end) == (start, end)

    @pytest.mark.asyncio
    async def test_seeded_from_existing_activity(self, db_session):
        await award(db_session, "u1", 120, "Earlier this month", PointSource.MANUAL)
        goal = await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, level=1)
        assert goal.current_value == 120

    @pytest.mark.asyncio
    async def test_types_are_independent(self, db_session):
        monthly = await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, level=1)
        checkins = await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_CHECKINS, level=1)
        assert monthly.id != checkins.id


class TestCreateGoal:
    @pytest.mark.asyncio
    async def test_custom_target(self, db_session):
        goal = await goals.create_goal(db_session, "u1", GoalType.MONTHLY_CHECKINS, 4)
        assert goal.target_value == 4
        assert goal.auto_generated is False

    @pytest.mark.asyncio
    async def test_second_goal_in_window_conflicts(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 300)
        with pytest.raises(ConflictError):
            await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 900)

    @pytest.mark.asyncio
    async def test_target_must_be_positive(self, db_session):
        with pytest.raises(InvalidInputError):
            await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 0)


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_accumulates(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 100)
        await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 30)
        goal = await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 20)

        assert goal.current_value == 50
        assert goal.status == goals.STATUS_ACTIVE
        assert goal.completed_at is None

    @pytest.mark.asyncio
    async def test_reaching_target_completes(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 50)
        goal = await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 60)

        assert goal.status == goals.STATUS_COMPLETED
        assert goal.completed_at is not None

    @pytest.mark.asyncio
    async def test_completed_goal_stops_counting(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 10)
        await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 10)
        assert await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 5) is None

        goal = await goals.get_period_goal(db_session, "u1", GoalType.MONTHLY_POINTS)
        assert goal.current_value == 10

    @pytest.mark.asyncio
    async def test_no_goal_is_a_noop(self, db_session):
        assert await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 10) is None

    @pytest.mark.asyncio
    async def test_apply_progress_fans_out_by_metric(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 1000)
        await goals.create_goal(db_session, "u1", GoalType.WEEKLY_POINTS, 1000)
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_CHECKINS, 5)

        touched = await goals.apply_progress(db_session, "u1", GoalMetric.POINTS, 40)
        assert {g.goal_type for g in touched} == {"monthly_points", "weekly_points"}

        checkins = await goals.get_period_goal(db_session, "u1", GoalType.MONTHLY_CHECKINS)
        assert checkins.current_value == 0


class TestExpiry:
    @pytest.mark.asyncio
    async def test_overdue_goal_expires(self, db_session):
        now = datetime.now(timezone.utc)
        db_session.add(Goal(
            user_id="u1",
            goal_type="monthly_points",
            target_value=500,
            current_value=120,
            period_start=date(2020, 1, 1),
            period_end=date(2020, 1, 31),
            status="active",
            auto_generated=True,
            created_at=now,
            updated_at=now,
        ))
        await db_session.commit()

        assert await goals.expire_overdue(db_session) == 1
        await db_session.commit()

        rows = await goals.list_goals(db_session, "u1")
        assert rows[0].status == goals.STATUS_EXPIRED
        assert rows[0].current_value == 120

    @pytest.mark.asyncio
    async def test_current_goal_not_expired(self, db_session):
        await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, level=1)
        assert await goals.expire_overdue(db_session) == 0

    @pytest.mark.asyncio
    async def test_past_window_has_no_active_goal(self, db_session):
        assert await goals.get_active_goal(db_session, "u1", GoalType.MONTHLY_POINTS, date(2020, 1, 15)) is None


class TestUpdateTarget:
    @pytest.mark.asyncio
    async def test_lowering_target_below_progress_completes(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 200)
        goal = await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 80)

        goal = await goals.update_target(db_session, goal, 75)
        assert goal.status == goals.STATUS_COMPLETED

    @pytest.mark.asyncio
    async def test_auto_goal_becomes_custom(self, db_session):
        goal = await goals.auto_create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, level=1)
        goal = await goals.update_target(db_session, goal, 800)
        assert goal.target_value == 800
        assert goal.auto_generated is False

    @pytest.mark.asyncio
    async def test_completed_goal_is_frozen(self, db_session):
        await goals.create_goal(db_session, "u1", GoalType.MONTHLY_POINTS, 10)
        goal = await goals.update_progress(db_session, "u1", GoalType.MONTHLY_POINTS, 10)
        with pytest.raises(ConflictError):
            await goals.update_target(db_session, goal, 50)
