"""
HS256 JWT verification for tokens issued by the platform's auth provider.

The ledger never issues tokens. It only checks the signature, the audience
and the expiry, and reads the user id from the `sub` claim.
"""

from __future__ import annotations

from typing import Any

import jwt

from nexus.config import get_settings


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Args:
        token: The encoded JWT string.

    Returns:
        Decoded payload dictionary.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)

    return payload
