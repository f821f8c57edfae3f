"""Pydantic request/response models for ledger endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from civic_rewards.ledger.service import PointSource


class BalanceResponse(BaseModel):
    user_id: str
    balance: int
    level: int
    level_floor: int
    next_level_at: int
    points_to_next_level: int


class TransactionEntry(BaseModel):
    id: int
    amount: int
    reason: str
    source: str
    metadata: dict = {}
    created_at: datetime


class TransactionHistoryResponse(BaseModel):
    transactions: list[TransactionEntry]
    total: int
    page: int
    per_page: int


class ManualAwardRequest(BaseModel):
    amount: int = Field(..., description="Signed amount; negative values are corrections")
    reason: str = Field(..., min_length=1, max_length=256)
    source: PointSource = PointSource.MANUAL
    metadata: dict = {}


class ManualAwardResponse(BaseModel):
    transaction_id: int
    balance: int
    level: int
