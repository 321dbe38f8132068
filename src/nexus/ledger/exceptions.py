"""Ledger error taxonomy.

Idempotent no-ops ("already charged", "already awarded", "already granted
today") are result values, not exceptions. Everything here is a hard
failure the caller has to surface.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger failures."""


class InsufficientFunds(LedgerError):
    """Balance is lower than the requested debit. No mutation happened."""

    def __init__(self, user_id: str, required: int, available: int) -> None:
        self.user_id = user_id
        self.required = required
        self.available = available
        super().__init__(f"Insufficient credits. Required: {required}, available: {available}.")


class InvalidAmount(LedgerError):
    """Credit/debit amounts must be positive integers."""


class TaskNotFound(LedgerError):
    """No task with the given id (or not owned by the caller)."""


class TaskStateError(LedgerError):
    """The task is not in a state that allows the requested transition."""


class ReferralError(LedgerError):
    """Referral cannot be registered (unknown code, self-referral)."""


class LedgerStorageError(LedgerError):
    """The backing store failed; the transaction was rolled back."""
