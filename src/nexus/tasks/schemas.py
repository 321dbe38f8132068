"""Pydantic request/response models for task metering endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StartTaskRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=64)
    ai_mode: str | None = None
    input_data: dict[str, Any] | None = None


class CompleteTaskRequest(BaseModel):
    outcome: Literal["completed", "failed"]
    error_message: str | None = Field(None, max_length=2000)


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    credits_cost: int
    credits_deducted: bool
    credits_refunded: bool
    status: str
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]


class ChargeResponse(BaseModel):
    task_id: str
    status: str
    cost: int
    balance: int | None = None


class CompletionResponse(BaseModel):
    task: TaskResponse
    changed: bool
    refunded: bool = False
    refund_amount: int = 0
    referral_bonus: str | None = None


class CostCatalogResponse(BaseModel):
    task_costs: dict[str, int]
    ai_mode_multipliers: dict[str, int]
    default_task_type: str
    default_ai_mode: str
