"""Task metering: charge each billable task at most once.

The charge-once guard is a compare-and-set on `tasks.credits_deducted`
executed in the same transaction as the ledger debit. If the debit fails
the flag flip is rolled back with it.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.db.models import Task
from nexus.db.transaction import atomic
from nexus.ledger import store
from nexus.ledger.events import publish_balance_update
from nexus.ledger.exceptions import InsufficientFunds, InvalidAmount, TaskNotFound, TaskStateError

logger = logging.getLogger(__name__)

REASON_REFUND = "refund"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ChargeStatus(str, enum.Enum):
    CHARGED = "charged"
    ALREADY_CHARGED = "already_charged"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(slots=True)
class ChargeResult:
    status: ChargeStatus
    task_id: str
    cost: int
    balance: int | None = None
    available: int | None = None


@dataclass(slots=True)
class CompletionResult:
    task: Task
    changed: bool


@dataclass(slots=True)
class RefundResult:
    refunded: bool
    amount: int = 0
    balance: int | None = None


def charge_reason(task_type: str) -> str:
    return f"task:{task_type}"


async def start_task(
    db: AsyncSession,
    user_id: str,
    task_type: str,
    cost: int,
    input_data: dict[str, Any] | None = None,
) -> Task:
    """Record a new pending, uncharged task."""
    if isinstance(cost, bool) or not isinstance(cost, int) or cost < 0:
        raise InvalidAmount(f"Task cost must be a non-negative integer, got {cost!r}")

    task = Task(
        user_id=user_id,
        type=task_type,
        credits_cost=cost,
        credits_deducted=False,
        credits_refunded=False,
        status=TaskStatus.PENDING.value,
        input_data=input_data,
        created_at=datetime.now(timezone.utc),
    )
    async with atomic(db):
        db.add(task)
        await db.flush()

    logger.info("Task %s started for %s (%s, cost %d)", task.id, user_id, task_type, cost)
    return task


async def get_task(db: AsyncSession, task_id: str, user_id: str | None = None) -> Task:
    """Load a task, optionally scoped to its owner. Raises TaskNotFound."""
    stmt = select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
    if user_id is not None:
        stmt = stmt.where(Task.user_id == user_id)
    task = await db.scalar(stmt)
    if task is None:
        raise TaskNotFound(f"Task {task_id} not found")
    return task


async def charge_task(
    db: AsyncSession,
    task_id: str,
    redis: object = None,
    user_id: str | None = None,
) -> ChargeResult:
    """Deduct the task's cost exactly once.

    Returns CHARGED on the first successful call, ALREADY_CHARGED on every
    later or concurrent losing call, and INSUFFICIENT_FUNDS (with nothing
    written) when the balance does not cover the cost. A task that is no
    longer pending and was never charged raises TaskStateError.
    """
    task = await get_task(db, task_id, user_id)
    task_type, cost, owner = task.type, task.credits_cost, task.user_id

    try:
        async with atomic(db):
            flipped = await db.scalar(
                update(Task)
                .where(
                    Task.id == task_id,
                    Task.credits_deducted.is_(False),
                    Task.status == TaskStatus.PENDING.value,
                )
                .values(credits_deducted=True)
                .returning(Task.id)
                .execution_options(synchronize_session=False)
            )
            if flipped is None:
                current = await get_task(db, task_id)
                if current.credits_deducted:
                    return ChargeResult(status=ChargeStatus.ALREADY_CHARGED, task_id=task_id, cost=cost)
                raise TaskStateError(f"Task {task_id} is {current.status} and can no longer be charged")

            balance = None
            if cost > 0:
                balance = await store.debit(db, owner, cost, charge_reason(task_type), task_id=task_id)
    except InsufficientFunds as exc:
        logger.info("Task %s not charged: %s", task_id, exc)
        return ChargeResult(
            status=ChargeStatus.INSUFFICIENT_FUNDS,
            task_id=task_id,
            cost=cost,
            available=exc.available,
        )

    logger.info("Task %s charged %d to %s", task_id, cost, owner)
    if balance is not None:
        await publish_balance_update(redis, owner, balance, charge_reason(task_type))
    return ChargeResult(status=ChargeStatus.CHARGED, task_id=task_id, cost=cost, balance=balance)


async def complete_task(
    db: AsyncSession,
    task_id: str,
    outcome: TaskStatus | str,
    error_message: str | None = None,
    user_id: str | None = None,
) -> CompletionResult:
    """Move a pending task to completed or failed. Never touches the ledger.

    Only a charged or zero-cost task can finish as completed; an unpaid
    billable task raises TaskStateError and stays pending. Failing a task
    is always allowed. Completing a task that already left pending changes
    nothing and returns changed=False.
    """
    status = TaskStatus(outcome)
    if status is TaskStatus.PENDING:
        raise TaskStateError("A task can only be completed as 'completed' or 'failed'")

    await get_task(db, task_id, user_id)

    conditions = [Task.id == task_id, Task.status == TaskStatus.PENDING.value]
    if status is TaskStatus.COMPLETED:
        conditions.append(or_(Task.credits_deducted.is_(True), Task.credits_cost == 0))

    async with atomic(db):
        changed = await db.scalar(
            update(Task)
            .where(*conditions)
            .values(
                status=status.value,
                completed_at=datetime.now(timezone.utc),
                error_message=error_message if status is TaskStatus.FAILED else None,
            )
            .returning(Task.id)
            .execution_options(synchronize_session=False)
        )

    task = await get_task(db, task_id)
    if changed is None and task.status == TaskStatus.PENDING.value:
        raise TaskStateError(f"Task {task_id} must be charged before it can be completed")
    if changed is not None:
        logger.info("Task %s marked %s", task_id, status.value)
    return CompletionResult(task=task, changed=changed is not None)


async def settle_failed_task(db: AsyncSession, task_id: str, redis: object = None) -> RefundResult:
    """Refund a failed task's charge exactly once.

    Only a task that ended failed after a successful deduction is refunded.
    The refund entry carries the task id and reason "refund".
    """
    async with atomic(db):
        row = (
            await db.execute(
                update(Task)
                .where(
                    Task.id == task_id,
                    Task.status == TaskStatus.FAILED.value,
                    Task.credits_deducted.is_(True),
                    Task.credits_refunded.is_(False),
                )
                .values(credits_refunded=True)
                .returning(Task.user_id, Task.credits_cost)
                .execution_options(synchronize_session=False)
            )
        ).one_or_none()
        if row is None:
            return RefundResult(refunded=False)

        owner, cost = row
        balance = None
        if cost > 0:
            balance = await store.credit(db, owner, cost, REASON_REFUND, task_id=task_id)

    logger.info("Task %s refunded %d to %s", task_id, cost, owner)
    if balance is not None:
        await publish_balance_update(redis, owner, balance, REASON_REFUND)
    return RefundResult(refunded=True, amount=cost, balance=balance)


async def list_tasks(db: AsyncSession, user_id: str, limit: int = 50) -> list[Task]:
    """User's most recent tasks first."""
    result = await db.execute(
        select(Task)
        .where(Task.user_id == user_id)
        .order_by(Task.created_at.desc())
        .limit(max(1, min(limit, 50)))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
