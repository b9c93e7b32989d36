from __future__ import annotations

import logging
import uuid

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from emp_accounts.db.tenant import scoped_read
from emp_accounts.errors import InvalidToken, MalformedToken, SessionInvalid
from emp_accounts.models.tenancy import Account
from emp_accounts.security.config import SecurityConfig
from emp_accounts.security.context import Principal
from emp_accounts.security.permissions import PermissionSet
from emp_accounts.security.tokens import decode_session_token
from emp_accounts.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_ROLE_NAME = "EMPLOYEE"


def extract_bearer_token(request: Request, config: SecurityConfig) -> str:
    """
    Extract the session token from `Authorization: Bearer <token>`.

    A missing or ill-formed header is an authentication failure, not a bad request.
    """

    header_name = config.auth.authorization_header
    prefix = f"{config.auth.bearer_prefix} "

    raw = request.headers.get(header_name)
    if not raw or not raw.startswith(prefix):
        logger.info("Missing bearer token path=%s method=%s", request.url.path, request.method)
        raise InvalidToken("Missing token")

    token = raw[len(prefix) :].strip()
    if not token:
        logger.info("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise InvalidToken("Missing token")
    return token


def load_active_account(db: Session, account_id: uuid.UUID, comp_code: str) -> Account | None:
    """Live account row with role and user type, only if active in `comp_code`."""

    stmt = (
        select(Account)
        .where(Account.id == account_id, Account.status == "active")
        .options(
            selectinload(Account.role),
            selectinload(Account.user_type),
        )
    )
    return scoped_read(db, stmt, comp_code).scalar_one_or_none()


def bind_principal(db: Session, token: str, settings: Settings) -> Principal:
    """
    Turn a signed session token into a Principal.

    Only `sub` and `comp_code` are taken from the token; everything else comes
    from the account row as it is now, so disabling an account or moving it to
    another company invalidates existing sessions immediately.
    """

    claims = decode_session_token(token, settings)

    subject = claims.get("sub")
    comp_code = claims.get("comp_code")
    if not subject or not comp_code:
        logger.info("Token missing claims has_sub=%s has_comp_code=%s", bool(subject), bool(comp_code))
        raise MalformedToken()

    try:
        account_id = uuid.UUID(str(subject))
    except ValueError as exc:
        logger.info("Token subject is not an account id")
        raise MalformedToken() from exc

    account = load_active_account(db, account_id, str(comp_code))
    if account is None:
        logger.info("Session invalid account_id=%s comp_code=%s", account_id, comp_code)
        raise SessionInvalid()

    role = account.role
    user_type = account.user_type

    return Principal(
        id=account.id,
        emp_id=account.emp_id,
        fullname=account.fullname,
        username=account.username,
        email=account.email,
        role_id=account.role_id,
        role_name=((role.role_name if role else None) or DEFAULT_ROLE_NAME).upper(),
        user_type_id=account.user_type_id,
        user_type_name=((user_type.type_name if user_type else None) or "").upper(),
        department_id=account.department_id,
        comp_code=account.comp_code,
        status=account.status,
        permissions=PermissionSet.from_strings(role.permissions if role else ()),
    )
