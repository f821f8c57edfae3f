"""Goal types and their calendar windows."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum


class GoalPeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"


class GoalMetric(str, Enum):
    POINTS = "points"
    CHECKINS = "checkins"


class GoalType(str, Enum):
    MONTHLY_POINTS = "monthly_points"
    WEEKLY_POINTS = "weekly_points"
    MONTHLY_CHECKINS = "monthly_checkins"

    @property
    def period(self) -> GoalPeriod:
        return GOAL_TYPE_RULES[self][0]

    @property
    def metric(self) -> GoalMetric:
        return GOAL_TYPE_RULES[self][1]


GOAL_TYPE_RULES: dict[GoalType, tuple[GoalPeriod, GoalMetric]] = {
    GoalType.MONTHLY_POINTS: (GoalPeriod.MONTH, GoalMetric.POINTS),
    GoalType.WEEKLY_POINTS: (GoalPeriod.WEEK, GoalMetric.POINTS),
    GoalType.MONTHLY_CHECKINS: (GoalPeriod.MONTH, GoalMetric.CHECKINS),
}


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def period_window(period: GoalPeriod, on: date) -> tuple[date, date]:
    """Inclusive [start, end] calendar window containing ``on``.

    Weeks run Monday to Sunday; months run from the 1st to the last day.
    """
    if period is GoalPeriod.WEEK:
        start = on - timedelta(days=on.weekday())
        return start, start + timedelta(days=6)
    last_day = calendar.monthrange(on.year, on.month)[1]
    return on.replace(day=1), on.replace(day=last_day)


def window_bounds_utc(start: date, end: date) -> tuple[datetime, datetime]:
    """Half-open UTC datetime range covering the inclusive date window."""
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper
