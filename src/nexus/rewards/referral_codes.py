"""Referral code generation.

Codes are 8-character alphanumeric (A-Z, 0-9), generated server-side with
a cryptographic random source. The characters 0, O, 1 and I are excluded.
"""

from __future__ import annotations

import secrets
import string

REFERRAL_CHARSET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")
REFERRAL_LENGTH = 8


def generate_referral_code() -> str:
    """Generate a random referral code."""
    return "".join(secrets.choice(REFERRAL_CHARSET) for _ in range(REFERRAL_LENGTH))


def normalize_referral_code(code: str) -> str:
    """Normalize a referral code for case-insensitive lookup."""
    return code.strip().upper()
