"""Proximity clustering for the check-in heatmap."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from civic_rewards.geo.validator import Coordinate, distance_m


@dataclass(frozen=True)
class MapPoint:
    latitude: float
    longitude: float
    checked_in_at: datetime
    city: str | None = None
    state: str | None = None


@dataclass
class Cluster:
    latitude: float
    longitude: float
    city: str | None
    state: str | None
    count: int = 0
    first_checkin_at: datetime | None = None
    last_checkin_at: datetime | None = None
    dates: list[datetime] = field(default_factory=list)

    def add(self, point: MapPoint) -> None:
        self.count += 1
        self.dates.append(point.checked_in_at)
        if self.first_checkin_at is None or point.checked_in_at < self.first_checkin_at:
            self.first_checkin_at = point.checked_in_at
        if self.last_checkin_at is None or point.checked_in_at > self.last_checkin_at:
            self.last_checkin_at = point.checked_in_at


def cluster_points(points: list[MapPoint], radius_m: float) -> list[Cluster]:
    """Group points lying within ``radius_m`` of a seed point.

    Points are scanned in input order; the first unassigned point seeds a
    cluster and absorbs every later unassigned point within the radius of
    the seed. Cluster coordinates are the seed's, so output is stable for a
    given input order.
    """
    clusters: list[Cluster] = []
    assigned = [False] * len(points)

    for i, seed in enumerate(points):
        if assigned[i]:
            continue
        assigned[i] = True
        origin = Coordinate(seed.latitude, seed.longitude)
        cluster = Cluster(latitude=seed.latitude, longitude=seed.longitude, city=seed.city, state=seed.state)
        cluster.add(seed)

        for j in range(i + 1, len(points)):
            if assigned[j]:
                continue
            other = points[j]
            if distance_m(origin, Coordinate(other.latitude, other.longitude)) <= radius_m:
                assigned[j] = True
                cluster.add(other)

        clusters.append(cluster)

    return clusters
