"""
vision_backend/tokens.py

Token service: issues and verifies signed, time-limited identity tokens.

Tokens are HS256 JWTs carrying the user id in "sub". Verification checks
signature, structure and expiry only; account status is checked by the
auth pipeline when the user is loaded.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from vision_backend.config import Settings, get_settings
from vision_backend.errors import InvalidToken


def issue_token(user_id: str, settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(days=settings.token_expire_days),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str, settings: Optional[Settings] = None) -> str:
    """
    Verify a token and return the user id it was issued for.

    Raises:
        InvalidToken: bad signature, malformed token, expired, or no subject
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidToken("Not authorized - token expired")
    except jwt.InvalidTokenError:
        raise InvalidToken()

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise InvalidToken("Not authorized - invalid token payload")
    return user_id
