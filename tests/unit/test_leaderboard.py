"""Leaderboard tests: competition ranking, tie-breaks, windows and geography."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from civic_rewards.errors import InvalidInputError
from civic_rewards.leaderboard.service import (
    Geography,
    Standing,
    TimeWindow,
    assign_positions,
    geography_of,
    rank,
    window_start,
)

T0 = datetime(2025, 6, 1, 12, 0)


class TestAssignPositions:
    def test_ties_share_position(self):
        standings = [
            Standing("carol", 90, T0),
            Standing("bob", 150, T0 + timedelta(minutes=5)),
            Standing("alice", 150, T0),
        ]
        positioned = assign_positions(standings)
        assert [(pos, s.user_id) for pos, s in positioned] == [(1, "alice"), (1, "bob"), (3, "carol")]

    def test_equal_first_activity_falls_back_to_user_id(self):
        positioned = assign_positions([Standing("zed", 10, T0), Standing("amy", 10, T0)])
        assert [s.user_id for _, s in positioned] == ["amy", "zed"]

    def test_empty(self):
        assert assign_positions([]) == []

    def test_negative_totals_rank_last(self):
        positioned = assign_positions([Standing("a", -5, T0), Standing("b", 0, T0)])
        assert [(pos, s.user_id) for pos, s in positioned] == [(1, "b"), (2, "a")]


class TestWindowStart:
    NOW = datetime(2025, 3, 12, 15, 30, tzinfo=timezone.utc)  # Wednesday

    def test_day(self):
        assert window_start(TimeWindow.DAY, self.NOW) == datetime(2025, 3, 12, tzinfo=timezone.utc)

    def test_week_starts_monday(self):
        assert window_start(TimeWindow.WEEK, self.NOW) == datetime(2025, 3, 10, tzinfo=timezone.utc)

    def test_month(self):
        assert window_start(TimeWindow.MONTH, self.NOW) == datetime(2025, 3, 1, tzinfo=timezone.utc)

    def test_year(self):
        assert window_start(TimeWindow.YEAR, self.NOW) == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_all_time(self):
        assert window_start(TimeWindow.ALL_TIME, self.NOW) is None


class TestRank:
    @pytest.mark.asyncio
    async def test_positions_from_ledger(self, db_session, add_points):
        now = datetime.now(timezone.utc)
        await add_points("alice", 100, created_at=now - timedelta(hours=3))
        await add_points("alice", 50, created_at=now - timedelta(hours=1))
        await add_points("bob", 150, created_at=now - timedelta(hours=2))
        await add_points("carol", 90, created_at=now - timedelta(hours=4))

        result = await rank(db_session, None, TimeWindow.ALL_TIME, user_id="carol")
        assert [(e["position"], e["user_id"], e["points"]) for e in result["rankings"]] == [
            (1, "alice", 150),
            (1, "bob", 150),
            (3, "carol", 90),
        ]
        assert result["total_participants"] == 3
        assert result["position"] == 3
        assert result["me"]["points"] == 90

    @pytest.mark.asyncio
    async def test_window_excludes_older_points(self, db_session, add_points):
        now = datetime.now(timezone.utc)
        await add_points("alice", 500, created_at=now - timedelta(days=400))
        await add_points("alice", 10, created_at=now)
        await add_points("bob", 20, created_at=now)

        result = await rank(db_session, None, TimeWindow.DAY)
        assert [(e["user_id"], e["points"]) for e in result["rankings"]] == [("bob", 20), ("alice", 10)]
        # Levels come from the all-time balance
        assert result["rankings"][1]["level"] == 6

    @pytest.mark.asyncio
    async def test_limit_keeps_requesting_user(self, db_session, add_points):
        for i in range(5):
            await add_points(f"user{i}", 100 - i * 10)

        result = await rank(db_session, None, TimeWindow.ALL_TIME, user_id="user4", limit=2)
        assert [e["user_id"] for e in result["rankings"]] == ["user0", "user1"]
        assert result["position"] == 5
        assert result["me"]["user_id"] == "user4"

    @pytest.mark.asyncio
    async def test_user_without_points_has_no_position(self, db_session, add_points):
        await add_points("alice", 10)
        result = await rank(db_session, None, TimeWindow.ALL_TIME, user_id="ghost")
        assert result["position"] is None
        assert result["me"] is None

    @pytest.mark.asyncio
    async def test_geography_filter(self, db_session, add_points, make_profile):
        await make_profile("alice", city="Austin", state="TX")
        await make_profile("bob", city="Dallas", state="TX")
        await make_profile("carol", city="Denver", state="CO")
        for user in ("alice", "bob", "carol"):
            await add_points(user, 10)

        by_state = await rank(db_session, None, TimeWindow.ALL_TIME, Geography(state="tx"))
        assert {e["user_id"] for e in by_state["rankings"]} == {"alice", "bob"}

        by_city = await rank(db_session, None, TimeWindow.ALL_TIME, Geography(city="Austin", state="TX"))
        assert [e["user_id"] for e in by_city["rankings"]] == ["alice"]
        assert by_city["rankings"][0]["display_name"] == "alice"

    @pytest.mark.asyncio
    async def test_cached_standings_reused(self, db_session, add_points, redis_mock):
        await add_points("alice", 10)
        await rank(db_session, redis_mock, TimeWindow.ALL_TIME, cache_ttl=30)
        key, payload = redis_mock.set.await_args.args
        assert key == "leaderboard:all_time:all:*:*"
        assert redis_mock.set.await_args.kwargs == {"ex": 30}

        redis_mock.get.return_value = payload
        await add_points("bob", 99)
        result = await rank(db_session, redis_mock, TimeWindow.ALL_TIME, cache_ttl=30)
        assert [e["user_id"] for e in result["rankings"]] == ["alice"]
        assert json.loads(payload)[0][:2] == ["alice", 10]


class TestGeographyOf:
    @pytest.mark.asyncio
    async def test_city_scope(self, db_session, make_profile):
        await make_profile("alice", city="Austin", state="TX")
        assert await geography_of(db_session, "alice", "city") == Geography(city="Austin", state="TX")
        assert await geography_of(db_session, "alice", "state") == Geography(state="TX")

    @pytest.mark.asyncio
    async def test_global_scope(self, db_session):
        assert (await geography_of(db_session, "anyone", "global")).is_empty

    @pytest.mark.asyncio
    async def test_missing_profile_field(self, db_session, make_profile):
        await make_profile("alice", state="TX")
        with pytest.raises(InvalidInputError):
            await geography_of(db_session, "alice", "city")
