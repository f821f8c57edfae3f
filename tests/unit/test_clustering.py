"""Heatmap clustering tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from civic_rewards.geo.clustering import MapPoint, cluster_points
from tests.conftest import EVENT_LAT, EVENT_LNG, point_north_of

NOW = datetime(2025, 3, 10, 18, 0, tzinfo=timezone.utc)


def _point(meters_north: float, minutes_ago: int = 0) -> MapPoint:
    lat, lng = point_north_of(EVENT_LAT, EVENT_LNG, meters_north)
    return MapPoint(latitude=lat, longitude=lng, checked_in_at=NOW - timedelta(minutes=minutes_ago), city="New York")


class TestClusterPoints:
    def test_empty(self):
        assert cluster_points([], 100) == []

    def test_nearby_points_merge(self):
        clusters = cluster_points([_point(0), _point(50), _point(5000)], 100)
        assert [c.count for c in clusters] == [2, 1]

    def test_cluster_uses_seed_coordinates(self):
        seed = _point(0)
        clusters = cluster_points([seed, _point(60)], 100)
        assert clusters[0].latitude == seed.latitude
        assert clusters[0].longitude == seed.longitude
        assert clusters[0].city == "New York"

    def test_membership_measured_from_seed(self):
        """Chained points beyond the radius of the seed start a new cluster."""
        clusters = cluster_points([_point(0), _point(80), _point(160)], 100)
        assert [c.count for c in clusters] == [2, 1]

    def test_time_range(self):
        clusters = cluster_points([_point(0, minutes_ago=5), _point(10, minutes_ago=60)], 100)
        cluster = clusters[0]
        assert cluster.first_checkin_at == NOW - timedelta(minutes=60)
        assert cluster.last_checkin_at == NOW - timedelta(minutes=5)
        assert len(cluster.dates) == 2
