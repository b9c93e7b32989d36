from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from emp_accounts.db.base import utc_now
from emp_accounts.db.tenant import scoped_insert, scoped_read, scoped_write
from emp_accounts.errors import AuthorizationDenied, BadRequest, ConflictError, ResourceNotFound
from emp_accounts.models.security import Role, UserType
from emp_accounts.models.tenancy import Account, Department
from emp_accounts.schemas.accounts import AccountCreate, AccountFilters
from emp_accounts.security.context import Principal
from emp_accounts.security.passwords import hash_password
from emp_accounts.security.permissions import PermissionSet, Scope
from emp_accounts.security.resolver import TargetLocator

logger = logging.getLogger(__name__)

# Fields a caller may change on their own account under an own-scope grant.
SELF_EDITABLE_FIELDS = frozenset({"fullname", "username", "email", "password"})


def get_account_by_id(db: Session, comp_code: str | None, account_id: uuid.UUID) -> Account | None:
    return scoped_read(db, select(Account).where(Account.id == account_id), comp_code).scalar_one_or_none()


def get_account_by_emp_id(db: Session, comp_code: str | None, emp_id: str) -> Account | None:
    matches = list(scoped_read(db, select(Account).where(Account.emp_id == emp_id), comp_code).scalars())
    if len(matches) > 1:
        # Only reachable without a tenant filter: emp_id is unique per company.
        raise ConflictError(f"Employee ID '{emp_id}' exists in several companies; pass comp_code")
    return matches[0] if matches else None


def find_account(db: Session, comp_code: str | None, locator: TargetLocator) -> Account | None:
    """Target loader for the permission gate."""

    if locator.id is not None:
        return get_account_by_id(db, comp_code, locator.id)
    if locator.emp_id is not None:
        return get_account_by_emp_id(db, comp_code, locator.emp_id)
    return None


def require_account(db: Session, comp_code: str | None, locator: TargetLocator) -> Account:
    account = find_account(db, comp_code, locator)
    if account is None:
        raise ResourceNotFound("Account not found")
    return account


def emp_id_exists(db: Session, comp_code: str, emp_id: str, exclude_id: uuid.UUID | None = None) -> bool:
    stmt = select(Account.id).where(Account.emp_id == emp_id)
    if exclude_id is not None:
        stmt = stmt.where(Account.id != exclude_id)
    return scoped_read(db, stmt.limit(1), comp_code).first() is not None


def _check_department(db: Session, comp_code: str, department_id: uuid.UUID) -> None:
    stmt = select(Department.department_id).where(Department.department_id == department_id)
    if scoped_read(db, stmt, comp_code).first() is None:
        raise BadRequest("Department does not exist in this company")


def _check_global_refs(db: Session, role_id: uuid.UUID | None, user_type_id: uuid.UUID | None) -> None:
    # Roles and user types are global tables: plain reads, no tenant scope.
    if role_id is not None and db.get(Role, role_id) is None:
        raise BadRequest("Role not found")
    if user_type_id is not None and db.get(UserType, user_type_id) is None:
        raise BadRequest("User type not found")


def owning_comp_code(db: Session, comp_code: str | None, account_id: uuid.UUID) -> str:
    """
    Company of an account. Cross-tenant callers (comp_code None) need it to run
    the per-company validations of an update against the right company.
    """

    if comp_code is not None:
        return comp_code
    found = db.execute(select(Account.comp_code).where(Account.id == account_id)).scalar_one_or_none()
    if found is None:
        raise ResourceNotFound("Account not found")
    return found


def create_account(db: Session, comp_code: str, payload: AccountCreate, *, bcrypt_rounds: int = 12) -> Account:
    if emp_id_exists(db, comp_code, payload.emp_id):
        raise ConflictError(f"Employee ID '{payload.emp_id}' already exists")

    _check_global_refs(db, payload.role_id, payload.user_type_id)
    if payload.department_id is not None:
        _check_department(db, comp_code, payload.department_id)

    fields = {
        "emp_id": payload.emp_id,
        "fullname": payload.fullname,
        "username": payload.username,
        "email": payload.email,
        "password_hash": hash_password(payload.password, bcrypt_rounds),
        "department_id": payload.department_id,
        "user_type_id": payload.user_type_id,
        "role_id": payload.role_id,
        "status": payload.status,
    }

    try:
        account = scoped_insert(db, Account, fields, comp_code)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Account insert conflict comp_code=%s emp_id=%s", comp_code, payload.emp_id)
        raise ConflictError(f"Employee ID '{payload.emp_id}' already exists") from exc

    logger.info("Account created id=%s comp_code=%s", account.id, comp_code)
    return account


def list_accounts(
    db: Session,
    comp_code: str | None,
    filters: AccountFilters,
    *,
    scope: Scope = Scope.UNSCOPED,
    principal: Principal | None = None,
) -> list[Account]:
    """
    List accounts, narrowed by `scope` when access came through a scoped token.

    The scope predicate is added on top of the caller's own filters, so a
    department manager asking for another department gets no rows.
    """

    stmt = select(Account)

    if scope is Scope.OWN_DEPT and principal is not None:
        stmt = stmt.where(Account.department_id == principal.department_id)
    elif scope is Scope.OWN and principal is not None:
        stmt = stmt.where(Account.id == principal.id)

    if filters.department_id is not None:
        stmt = stmt.where(Account.department_id == filters.department_id)
    if filters.user_type_id is not None:
        stmt = stmt.where(Account.user_type_id == filters.user_type_id)
    if filters.status:
        stmt = stmt.where(Account.status == filters.status)
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                Account.fullname.ilike(pattern),
                Account.username.ilike(pattern),
                Account.email.ilike(pattern),
                Account.emp_id.ilike(pattern),
            )
        )

    stmt = stmt.order_by(Account.created_at.desc(), Account.emp_id).limit(filters.limit).offset(filters.offset)
    return list(scoped_read(db, stmt, comp_code).scalars())


def check_scoped_update(scope: Scope, principal: Principal, changes: dict[str, Any]) -> None:
    """Narrow what a scoped grant may change so it cannot be used to widen itself."""

    if scope is Scope.OWN:
        blocked = sorted(set(changes) - SELF_EDITABLE_FIELDS)
        if blocked:
            raise AuthorizationDenied(f"You cannot change {', '.join(blocked)} on your own account")
    elif scope is Scope.OWN_DEPT:
        if "department_id" in changes and changes["department_id"] != principal.department_id:
            raise AuthorizationDenied("Managers can only assign accounts to their own department")


def _within_reach(principal: Principal, role: Role | None, elevated_role: str) -> bool:
    if role is None:
        return True
    if role.role_name.upper() == elevated_role.upper():
        return False
    return principal.permissions.covers(PermissionSet.from_strings(role.permissions))


def check_role_assignment(
    db: Session,
    scope: Scope,
    principal: Principal,
    role_id: uuid.UUID | None,
    *,
    elevated_role: str,
) -> None:
    """
    Only the elevated role hands out the elevated role. Under a scoped grant,
    only roles the caller's own permissions cover may be assigned.
    """

    if role_id is None:
        return
    role = db.get(Role, role_id)
    if role is None:
        raise BadRequest("Role not found")
    if principal.role_name.upper() == elevated_role.upper():
        return
    if role.role_name.upper() == elevated_role.upper() or (
        scope is not Scope.UNSCOPED and not _within_reach(principal, role, elevated_role)
    ):
        logger.info("Role assignment refused user=%s role=%s", principal.id, role.role_name)
        raise AuthorizationDenied("You cannot assign a role with wider permissions than your own")


def check_scoped_target(
    db: Session,
    comp_code: str | None,
    scope: Scope,
    principal: Principal,
    account_id: uuid.UUID,
    *,
    elevated_role: str,
) -> None:
    """A department-scoped grant cannot modify an account whose role outranks the caller."""

    if scope is not Scope.OWN_DEPT:
        return
    account = require_account(db, comp_code, TargetLocator(id=account_id))
    if not _within_reach(principal, account.role, elevated_role):
        raise AuthorizationDenied("You cannot manage an account with wider permissions than your own")


def update_account(
    db: Session,
    comp_code: str | None,
    account_id: uuid.UUID,
    changes: dict[str, Any],
    *,
    bcrypt_rounds: int = 12,
) -> Account | None:
    """
    Apply `changes` (already validated against AccountUpdate) to one account.

    Returns None when the account is not visible in `comp_code`.
    """

    if not changes:
        return get_account_by_id(db, comp_code, account_id)

    owner = owning_comp_code(db, comp_code, account_id)

    if "emp_id" in changes and emp_id_exists(db, owner, changes["emp_id"], exclude_id=account_id):
        raise ConflictError(f"Employee ID '{changes['emp_id']}' is already taken")
    if changes.get("department_id") is not None:
        _check_department(db, owner, changes["department_id"])
    _check_global_refs(db, changes.get("role_id"), changes.get("user_type_id"))

    values = {key: value for key, value in changes.items() if key != "password"}
    if "password" in changes:
        values["password_hash"] = hash_password(changes["password"], bcrypt_rounds)
    values["updated_at"] = utc_now()

    stmt = update(Account).where(Account.id == account_id).values(**values).returning(Account)
    try:
        account = scoped_write(db, stmt, comp_code).scalar_one_or_none()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Employee ID '{changes.get('emp_id')}' is already taken") from exc
    return account


def disable_account(db: Session, comp_code: str | None, account_id: uuid.UUID) -> Account | None:
    stmt = (
        update(Account)
        .where(Account.id == account_id)
        .values(status="disabled", updated_at=utc_now())
        .returning(Account)
    )
    account = scoped_write(db, stmt, comp_code).scalar_one_or_none()
    db.commit()
    if account is not None:
        logger.info("Account disabled id=%s", account_id)
    return account


def delete_account(db: Session, comp_code: str | None, account_id: uuid.UUID) -> bool:
    stmt = delete(Account).where(Account.id == account_id).returning(Account.id)
    deleted = scoped_write(db, stmt, comp_code).first() is not None
    db.commit()
    if deleted:
        logger.info("Account deleted id=%s", account_id)
    return deleted

