"""Ledger store: account balances and the append-only transaction log.

`credit` and `debit` only flush. They are meant to run inside a caller's
transaction (see `nexus.db.transaction.atomic`) so a balance change, its
ledger entry and any idempotency flag commit or roll back together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.db.dialect import insert_for
from nexus.db.models import AccountBalance, LedgerEntry
from nexus.db.transaction import atomic
from nexus.ledger.events import publish_balance_update
from nexus.ledger.exceptions import InsufficientFunds, InvalidAmount

logger = logging.getLogger(__name__)

ENTRY_EARN = "earn"
ENTRY_SPEND = "spend"


@dataclass(slots=True)
class LedgerSummary:
    balance: int
    total_earned: int
    total_spent: int
    operations_count: int


@dataclass(slots=True)
class Reconciliation:
    user_id: str
    balance: int
    entries_total: int

    @property
    def balanced(self) -> bool:
        return self.balance == self.entries_total


def _check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
    return amount


async def ensure_account(db: AsyncSession, user_id: str) -> None:
    """Create the zero balance row for a user if it does not exist yet."""
    now = datetime.now(timezone.utc)
    stmt = (
        insert_for(db, AccountBalance)
        .values(user_id=user_id, amount=0, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=[AccountBalance.user_id])
    )
    await db.execute(stmt)


async def credit(
    db: AsyncSession,
    user_id: str,
    amount: int,
    reason: str,
    task_id: str | None = None,
) -> int:
    """Add credits and append an earn entry. Returns the new balance."""
    _check_amount(amount)
    await ensure_account(db, user_id)

    now = datetime.now(timezone.utc)
    new_balance = await db.scalar(
        update(AccountBalance)
        .where(AccountBalance.user_id == user_id)
        .values(amount=AccountBalance.amount + amount, updated_at=now)
        .returning(AccountBalance.amount)
        .execution_options(synchronize_session=False)
    )
    db.add(LedgerEntry(
        user_id=user_id,
        amount=amount,
        type=ENTRY_EARN,
        reason=reason,
        task_id=task_id,
        created_at=now,
    ))
    await db.flush()

    logger.info("Credited %d to %s (%s), balance %s", amount, user_id, reason, new_balance)
    return int(new_balance)


async def debit(
    db: AsyncSession,
    user_id: str,
    amount: int,
    reason: str,
    task_id: str | None = None,
) -> int:
    """Remove credits and append a spend entry. Returns the new balance.

    The balance check and the decrement are one conditional UPDATE, so two
    concurrent debits can never take the balance below zero. Raises
    InsufficientFunds without mutating anything when the balance is short.
    """
    _check_amount(amount)

    now = datetime.now(timezone.utc)
    new_balance = await db.scalar(
        update(AccountBalance)
        .where(AccountBalance.user_id == user_id, AccountBalance.amount >= amount)
        .values(amount=AccountBalance.amount - amount, updated_at=now)
        .returning(AccountBalance.amount)
        .execution_options(synchronize_session=False)
    )
    if new_balance is None:
        available = await get_balance(db, user_id)
        raise InsufficientFunds(user_id, amount, available)

    db.add(LedgerEntry(
        user_id=user_id,
        amount=-amount,
        type=ENTRY_SPEND,
        reason=reason,
        task_id=task_id,
        created_at=now,
    ))
    await db.flush()

    logger.info("Debited %d from %s (%s), balance %s", amount, user_id, reason, new_balance)
    return int(new_balance)


# ---------------------------------------------------------------------------
# Committed entry points
# ---------------------------------------------------------------------------


async def grant_credits(db: AsyncSession, redis: object, user_id: str, amount: int, reason: str) -> int:
    """Credit in its own transaction and notify listeners after commit."""
    async with atomic(db):
        balance = await credit(db, user_id, amount, reason)
    await publish_balance_update(redis, user_id, balance, reason)
    return balance


async def spend_credits(db: AsyncSession, redis: object, user_id: str, amount: int, reason: str) -> int:
    """Debit in its own transaction and notify listeners after commit."""
    async with atomic(db):
        balance = await debit(db, user_id, amount, reason)
    await publish_balance_update(redis, user_id, balance, reason)
    return balance


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_balance(db: AsyncSession, user_id: str) -> int:
    """Current balance; users without an account row have 0."""
    amount = await db.scalar(select(AccountBalance.amount).where(AccountBalance.user_id == user_id))
    return int(amount or 0)


async def list_entries(
    db: AsyncSession,
    user_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
    entry_type: str | None = None,
) -> list[LedgerEntry]:
    """Most recent ledger entries first."""
    safe_limit = max(1, min(limit, 50))
    stmt = select(LedgerEntry).where(LedgerEntry.user_id == user_id)
    if entry_type is not None:
        stmt = stmt.where(LedgerEntry.type == entry_type)
    result = await db.execute(
        stmt.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .offset(max(offset, 0))
        .limit(safe_limit)
    )
    return list(result.scalars().all())


async def sum_entries(db: AsyncSession, user_id: str, reason_prefix: str | None = None) -> int:
    """Sum of entry amounts, optionally restricted to reasons with a prefix."""
    stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(LedgerEntry.user_id == user_id)
    if reason_prefix is not None:
        stmt = stmt.where(LedgerEntry.reason.startswith(reason_prefix, autoescape=True))
    return int(await db.scalar(stmt) or 0)


async def get_summary(db: AsyncSession, user_id: str) -> LedgerSummary:
    total_earned, total_spent, operations_count = (
        await db.execute(
            select(
                func.coalesce(
                    func.sum(case((LedgerEntry.amount > 0, LedgerEntry.amount), else_=0)), 0
                ),
                func.coalesce(
                    func.sum(case((LedgerEntry.amount < 0, -LedgerEntry.amount), else_=0)), 0
                ),
                func.count(LedgerEntry.id),
            ).where(LedgerEntry.user_id == user_id)
        )
    ).one()

    return LedgerSummary(
        balance=await get_balance(db, user_id),
        total_earned=int(total_earned or 0),
        total_spent=int(total_spent or 0),
        operations_count=int(operations_count or 0),
    )


async def reconcile(db: AsyncSession, user_id: str) -> Reconciliation:
    """Compare the stored balance with the sum of the user's ledger entries."""
    return Reconciliation(
        user_id=user_id,
        balance=await get_balance(db, user_id),
        entries_total=await sum_entries(db, user_id),
    )
