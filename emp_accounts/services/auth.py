from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from emp_accounts.db.tenant import scoped_read
from emp_accounts.errors import AuthenticationError, BadRequest
from emp_accounts.models.tenancy import Account
from emp_accounts.schemas.auth import LoginRequest, LoginResponse, PrincipalOut
from emp_accounts.security.auth import DEFAULT_ROLE_NAME
from emp_accounts.security.passwords import verify_password
from emp_accounts.security.tokens import issue_session_token
from emp_accounts.settings import Settings

logger = logging.getLogger(__name__)


def login(db: Session, payload: LoginRequest, settings: Settings) -> LoginResponse:
    """
    Password login inside one company.

    The account lookup is confined to `comp_code`, so the same username in two
    companies never collides, and disabled accounts cannot log in.
    """

    identifier = payload.username_or_email.strip()
    comp_code = payload.comp_code.strip().upper()
    if not identifier or not comp_code:
        raise BadRequest("username_or_email, password and comp_code are required")

    stmt = (
        select(Account)
        .where(
            or_(Account.username == identifier, Account.email == identifier),
            Account.status == "active",
        )
        .options(selectinload(Account.role))
    )
    account = scoped_read(db, stmt, comp_code).scalars().first()

    if account is None or not verify_password(payload.password, account.password_hash):
        logger.info("Login failed comp_code=%s", comp_code)
        raise AuthenticationError("Invalid credentials or company")

    role_name = ((account.role.role_name if account.role else None) or DEFAULT_ROLE_NAME).upper()
    token = issue_session_token(
        account_id=str(account.id),
        emp_id=account.emp_id,
        comp_code=account.comp_code,
        role_name=role_name,
        fullname=account.fullname,
        settings=settings,
    )
    logger.info("Login ok account_id=%s comp_code=%s", account.id, comp_code)

    return LoginResponse(
        token=token,
        user=PrincipalOut(
            id=account.id,
            emp_id=account.emp_id,
            fullname=account.fullname,
            username=account.username,
            email=account.email,
            department_id=account.department_id,
            role_id=account.role_id,
            role_name=role_name,
            comp_code=account.comp_code,
            status=account.status,
        ),
    )
