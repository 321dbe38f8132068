"""Task metering endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.auth.dependencies import get_current_user_id
from nexus.config import get_settings
from nexus.database import get_session
from nexus.dependencies import get_redis_dep
from nexus.ledger.exceptions import InsufficientFunds
from nexus.rewards.referrals import award_first_task_bonus
from nexus.tasks import metering
from nexus.tasks.costs import compute_task_cost, cost_catalog
from nexus.tasks.schemas import (
    ChargeResponse,
    CompleteTaskRequest,
    CompletionResponse,
    CostCatalogResponse,
    StartTaskRequest,
    TaskListResponse,
    TaskResponse,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])


@router.get("/costs", response_model=CostCatalogResponse)
async def get_costs():
    """Base credit cost per task type and AI mode multipliers."""
    return CostCatalogResponse(**cost_catalog())


@router.post("", response_model=TaskResponse, status_code=201)
async def start_task(
    body: StartTaskRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Create a pending task priced from the cost catalog."""
    settings = get_settings()
    cost = compute_task_cost(
        body.type,
        body.ai_mode,
        user_id=user_id,
        unmetered_user_ids=settings.unmetered_user_ids,
    )
    task = await metering.start_task(db, user_id, body.type, cost, input_data=body.input_data)
    return TaskResponse.model_validate(task)


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    limit: int = Query(20, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    tasks = await metering.list_tasks(db, user_id, limit=limit)
    return TaskListResponse(tasks=[TaskResponse.model_validate(t) for t in tasks])


@router.post("/{task_id}/charge", response_model=ChargeResponse)
async def charge_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Charge the task once. A repeated charge returns already_charged."""
    result = await metering.charge_task(db, task_id, redis=redis, user_id=user_id)
    if result.status is metering.ChargeStatus.INSUFFICIENT_FUNDS:
        raise InsufficientFunds(user_id, result.cost, result.available or 0)
    return ChargeResponse(
        task_id=result.task_id,
        status=result.status.value,
        cost=result.cost,
        balance=result.balance,
    )


@router.post("/{task_id}/complete", response_model=CompletionResponse)
async def complete_task(
    task_id: str,
    body: CompleteTaskRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Record the task outcome and run the follow-ups that depend on it.

    A failed task is refunded when refunds are enabled. A completed task
    triggers the one-shot first-task referral bonus for the user's referrer.
    """
    completion = await metering.complete_task(
        db, task_id, body.outcome, error_message=body.error_message, user_id=user_id
    )
    response = CompletionResponse(
        task=TaskResponse.model_validate(completion.task),
        changed=completion.changed,
    )

    if completion.task.status == metering.TaskStatus.FAILED.value and get_settings().refund_failed_tasks:
        refund = await metering.settle_failed_task(db, task_id, redis=redis)
        response.refunded = refund.refunded
        response.refund_amount = refund.amount
        if refund.refunded:
            response.task = TaskResponse.model_validate(await metering.get_task(db, task_id))
    elif completion.task.status == metering.TaskStatus.COMPLETED.value:
        bonus = await award_first_task_bonus(db, user_id, redis=redis)
        response.referral_bonus = bonus.outcome.value

    return response
