"""
Session tokens: issue and verify the signed JWT handed out at login.

Only identity and company are trusted from the token (``sub`` and
``comp_code``). Role, department and status are always re-read from the live
account row by ``emp_accounts.security.auth``, so the remaining claims are
informational.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from emp_accounts.errors import ExpiredToken, InvalidToken
from emp_accounts.settings import Settings

logger = logging.getLogger(__name__)


def issue_session_token(
    *,
    account_id: str,
    emp_id: str,
    comp_code: str,
    role_name: str,
    fullname: str,
    settings: Settings,
    now: datetime | None = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": account_id,
        "emp_id": emp_id,
        "comp_code": comp_code,
        "role_name": role_name,
        "fullname": fullname,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.jwt_expires_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Verify signature and expiry and return the claims.

    Raises ExpiredToken or InvalidToken. Claim presence is checked by the caller.
    """

    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            leeway=settings.jwt_leeway_seconds,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "require": ["exp"],
            },
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Token expired")
        raise ExpiredToken() from e
    except jwt.InvalidTokenError as e:
        logger.info("Token invalid: %s", type(e).__name__)
        raise InvalidToken() from e
