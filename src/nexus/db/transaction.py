"""Transaction boundary shared by every ledger-mutating entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.ledger.exceptions import LedgerStorageError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit the session's work as one unit, or roll all of it back.

    Storage failures are logged and re-raised as LedgerStorageError; any
    other exception (e.g. InsufficientFunds) is re-raised unchanged after
    the rollback.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Ledger transaction rolled back after storage failure")
        raise LedgerStorageError("Temporarily unavailable, try again") from exc
    except BaseException:
        await db.rollback()
        raise
