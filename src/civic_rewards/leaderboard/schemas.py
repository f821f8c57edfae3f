"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    position: int
    user_id: str
    display_name: str | None = None
    city: str | None = None
    state: str | None = None
    points: int
    level: int


class LeaderboardResponse(BaseModel):
    window: str
    window_start: datetime | None
    scope: str
    city: str | None = None
    state: str | None = None
    rankings: list[LeaderboardEntry]
    total_participants: int
    position: int | None = None
    me: LeaderboardEntry | None = None
