"""Credit balance and history endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.auth.dependencies import get_current_user_id
from nexus.config import get_settings
from nexus.database import get_session
from nexus.ledger import store
from nexus.ledger.guard import can_afford
from nexus.ledger.schemas import (
    BalanceResponse,
    CanAffordResponse,
    HistoryResponse,
    LedgerEntryResponse,
    SummaryResponse,
)

router = APIRouter(prefix="/api/v1/credits", tags=["Credits"])


@router.get("", response_model=BalanceResponse)
async def get_balance(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return BalanceResponse(balance=await store.get_balance(db, user_id))


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Balance with lifetime earned/spent totals."""
    summary = await store.get_summary(db, user_id)
    return SummaryResponse(
        balance=summary.balance,
        total_earned=summary.total_earned,
        total_spent=summary.total_spent,
        operations_count=summary.operations_count,
    )


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type: Literal["earn", "spend"] | None = Query(None),  # noqa: A002
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Ledger entries, newest first. Pages are capped at the configured limit."""
    limit = min(limit, get_settings().history_page_limit)
    entries = await store.list_entries(db, user_id, limit=limit, offset=offset, entry_type=type)
    return HistoryResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        limit=limit,
        offset=offset,
    )


@router.get("/can-afford", response_model=CanAffordResponse)
async def check_can_afford(
    cost: int = Query(..., ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Advisory check for UI gating; the charge itself is authoritative."""
    return CanAffordResponse(
        cost=cost,
        balance=await store.get_balance(db, user_id),
        can_afford=await can_afford(db, user_id, cost),
    )
