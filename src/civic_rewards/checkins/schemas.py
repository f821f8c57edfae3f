"""Pydantic request/response models for check-in endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from civic_rewards.achievements.schemas import UnlockedAchievementEntry


class GeoCheckInRequest(BaseModel):
    mode: Literal["geo"] = "geo"
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class SecretCheckInRequest(BaseModel):
    mode: Literal["secret"]
    code: str = Field(..., min_length=1, max_length=64)


CheckInRequest = Annotated[Union[GeoCheckInRequest, SecretCheckInRequest], Field(discriminator="mode")]


class CheckInEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    event_id: int
    mode: str
    latitude: float | None = None
    longitude: float | None = None
    distance_m: float | None = None
    checked_in_at: datetime


class CheckInResponse(BaseModel):
    checkin: CheckInEntry
    points_awarded: int
    achievements_unlocked: list[UnlockedAchievementEntry]
    reward_pending: bool


class UserCheckInEntry(CheckInEntry):
    event_title: str
    city: str | None = None
    state: str | None = None


class UserCheckInsResponse(BaseModel):
    checkins: list[UserCheckInEntry]
    total: int
    page: int
    per_page: int


class CheckInStatsResponse(BaseModel):
    total: int
    this_month: int
    this_week: int
    unique_events: int


class EventCheckInsResponse(BaseModel):
    event_id: int
    checkins: list[CheckInEntry]
    total: int


class MapCluster(BaseModel):
    latitude: float
    longitude: float
    count: int
    city: str | None = None
    state: str | None = None
    first_checkin_at: datetime | None = None
    last_checkin_at: datetime | None = None


class CheckInMapResponse(BaseModel):
    clusters: list[MapCluster]
    total: int
