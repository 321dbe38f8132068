"""Dialect-aware INSERT ... ON CONFLICT construction.

PostgreSQL runs in production; the SQLite dialect backs the test suite.
Both support ``ON CONFLICT DO NOTHING`` and ``RETURNING``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model: Any) -> Any:  # noqa: ANN401
    """Return an ``insert()`` construct with ``on_conflict_*`` support for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
