"""Pydantic response models for credit endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BalanceResponse(BaseModel):
    balance: int


class SummaryResponse(BaseModel):
    balance: int
    total_earned: int
    total_spent: int
    operations_count: int


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: int
    type: str
    reason: str
    task_id: str | None = None
    created_at: datetime


class HistoryResponse(BaseModel):
    entries: list[LedgerEntryResponse]
    limit: int
    offset: int


class CanAffordResponse(BaseModel):
    cost: int
    balance: int
    can_afford: bool
