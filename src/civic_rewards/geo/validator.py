"""Geofence validation: haversine distance and check-in admission.

Pure functions: no I/O, no clock. The check-in service feeds them the event
row and the current attendance count and acts on the returned admission.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Union

from civic_rewards.errors import InvalidInputError

EARTH_RADIUS_KM = 6371.0
GEOFENCE_RADIUS_M = 100.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Admitted:
    distance_m: float | None = None


@dataclass(frozen=True)
class TooFar:
    distance_m: float


@dataclass(frozen=True)
class AtCapacity:
    capacity: int


@dataclass(frozen=True)
class AlreadyCheckedIn:
    pass


Admission = Union[Admitted, TooFar, AtCapacity, AlreadyCheckedIn]


class GeofencedTarget(Protocol):
    """Anything with a location and an optional capacity (e.g. an Event row)."""

    latitude: float
    longitude: float
    capacity: int | None


def validate_coordinate(latitude: float, longitude: float) -> Coordinate:
    """Build a Coordinate, rejecting non-finite or out-of-range values."""
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise InvalidInputError("Coordinates must be finite numbers", latitude=latitude, longitude=longitude)
    if not -90.0 <= latitude <= 90.0:
        raise InvalidInputError("Latitude must be between -90 and 90", latitude=latitude)
    if not -180.0 <= longitude <= 180.0:
        raise InvalidInputError("Longitude must be between -180 and 180", longitude=longitude)
    return Coordinate(latitude=latitude, longitude=longitude)


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points on a spherical earth."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Distance in metres, rounded to the millimetre."""
    return round(distance_km(a, b) * 1000, 3)


def validate_admission(
    reported: Coordinate | None,
    event: GeofencedTarget,
    existing_count: int,
    *,
    already_checked_in: bool = False,
) -> Admission:
    """Classify a check-in attempt.

    ``reported`` is None for the secret-code path, which skips the distance
    check. Order of evaluation: distance, duplicate, capacity. The geofence
    is strict: a point exactly on the 100 m boundary is rejected.
    """
    measured: float | None = None
    if reported is not None:
        measured = distance_m(reported, Coordinate(event.latitude, event.longitude))
        if measured >= GEOFENCE_RADIUS_M:
            return TooFar(distance_m=measured)

    if already_checked_in:
        return AlreadyCheckedIn()

    if event.capacity is not None and existing_count >= event.capacity:
        return AtCapacity(capacity=event.capacity)

    return Admitted(distance_m=measured)
