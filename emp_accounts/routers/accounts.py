from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from emp_accounts.db.session import get_db
from emp_accounts.errors import ResourceNotFound
from emp_accounts.schemas.accounts import AccountCreate, AccountFilters, AccountOut, AccountUpdate
from emp_accounts.security.config import SecurityConfig
from emp_accounts.security.context import Principal, TenantContext
from emp_accounts.security.dependencies import (
    effective_comp_code,
    get_principal,
    get_security_config,
    get_tenant_context,
    insert_comp_code,
    require_permission,
)
from emp_accounts.security.resolver import Action, Decision, TargetLocator
from emp_accounts.services import accounts as account_service
from emp_accounts.settings import Settings, get_settings

router = APIRouter(prefix="/accounts", tags=["accounts"])

CREATE_TOKENS = ("accounts:create", "accounts:create:own-dept")
READ_TOKENS = ("accounts:read", "accounts:read_own", "accounts:read:own-dept")
UPDATE_TOKENS = ("accounts:update", "accounts:update_own", "accounts:update:own-dept")
DISABLE_TOKENS = ("accounts:disable", "accounts:disable:own-dept")
DELETE_TOKENS = ("accounts:delete",)

_load = account_service.find_account


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    decision: Decision = Depends(require_permission(CREATE_TOKENS, Action.CREATE)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    config: SecurityConfig = Depends(get_security_config),
):
    comp_code = insert_comp_code(principal, tenant, payload.comp_code)
    account_service.check_role_assignment(
        db, decision.scope, principal, payload.role_id, elevated_role=config.policy.elevated_role
    )
    return account_service.create_account(db, comp_code, payload, bcrypt_rounds=settings.bcrypt_rounds)


@router.get("", response_model=list[AccountOut])
def list_accounts(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    department_id: uuid.UUID | None = None,
    user_type_id: uuid.UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status", pattern="^(active|disabled)$"),
    search: str | None = None,
    comp_code: str | None = None,
    decision: Decision = Depends(require_permission(READ_TOKENS, Action.LIST)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    filters = AccountFilters(
        limit=limit,
        offset=offset,
        department_id=department_id,
        user_type_id=user_type_id,
        status=status_filter,
        search=search,
    )
    return account_service.list_accounts(
        db,
        effective_comp_code(tenant, comp_code),
        filters,
        scope=decision.scope,
        principal=principal,
    )


@router.get("/emp/{emp_id}", response_model=AccountOut)
def get_account_by_emp_id(
    emp_id: str,
    comp_code: str | None = None,
    decision: Decision = Depends(require_permission(READ_TOKENS, Action.READ, _load)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return account_service.require_account(db, effective_comp_code(tenant, comp_code), TargetLocator(emp_id=emp_id))


@router.get("/{id}", response_model=AccountOut)
def get_account(
    id: uuid.UUID,
    decision: Decision = Depends(require_permission(READ_TOKENS, Action.READ, _load)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return account_service.require_account(db, tenant.comp_code, TargetLocator(id=id))


def _update(
    db: Session,
    comp_code: str | None,
    account_id: uuid.UUID,
    payload: AccountUpdate,
    decision: Decision,
    principal: Principal,
    settings: Settings,
    elevated_role: str,
):
    changes = payload.model_dump(exclude_unset=True)
    account_service.check_scoped_update(decision.scope, principal, changes)
    account_service.check_scoped_target(
        db, comp_code, decision.scope, principal, account_id, elevated_role=elevated_role
    )
    account_service.check_role_assignment(
        db, decision.scope, principal, changes.get("role_id"), elevated_role=elevated_role
    )
    account = account_service.update_account(
        db, comp_code, account_id, changes, bcrypt_rounds=settings.bcrypt_rounds
    )
    if account is None:
        raise ResourceNotFound("Account not found")
    return account


@router.put("/emp/{emp_id}", response_model=AccountOut)
def update_account_by_emp_id(
    emp_id: str,
    payload: AccountUpdate,
    comp_code: str | None = None,
    decision: Decision = Depends(require_permission(UPDATE_TOKENS, Action.UPDATE, _load)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    config: SecurityConfig = Depends(get_security_config),
):
    scope_code = effective_comp_code(tenant, comp_code)
    account = account_service.require_account(db, scope_code, TargetLocator(emp_id=emp_id))
    return _update(
        db, scope_code, account.id, payload, decision, principal, settings, config.policy.elevated_role
    )


@router.put("/{id}", response_model=AccountOut)
def update_account(
    id: uuid.UUID,
    payload: AccountUpdate,
    decision: Decision = Depends(require_permission(UPDATE_TOKENS, Action.UPDATE, _load)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    config: SecurityConfig = Depends(get_security_config),
):
    return _update(
        db, tenant.comp_code, id, payload, decision, principal, settings, config.policy.elevated_role
    )


@router.patch("/emp/{emp_id}/disable", response_model=AccountOut)
def disable_account_by_emp_id(
    emp_id: str,
    comp_code: str | None = None,
    decision: Decision = Depends(require_permission(DISABLE_TOKENS, Action.DISABLE, _load)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    config: SecurityConfig = Depends(get_security_config),
):
    scope_code = effective_comp_code(tenant, comp_code)
    account = account_service.require_account(db, scope_code, TargetLocator(emp_id=emp_id))
    account_service.check_scoped_target(
        db, scope_code, decision.scope, principal, account.id, elevated_role=config.policy.elevated_role
    )
    return account_service.disable_account(db, scope_code, account.id)


@router.patch("/{id}/disable", response_model=AccountOut)
def disable_account(
    id: uuid.UUID,
    decision: Decision = Depends(require_permission(DISABLE_TOKENS, Action.DISABLE, _load)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    config: SecurityConfig = Depends(get_security_config),
):
    account_service.check_scoped_target(
        db, tenant.comp_code, decision.scope, principal, id, elevated_role=config.policy.elevated_role
    )
    account = account_service.disable_account(db, tenant.comp_code, id)
    if account is None:
        raise ResourceNotFound("Account not found")
    return account


@router.delete("/emp/{emp_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account_by_emp_id(
    emp_id: str,
    comp_code: str | None = None,
    decision: Decision = Depends(require_permission(DELETE_TOKENS, Action.DELETE, _load)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> Response:
    scope_code = effective_comp_code(tenant, comp_code)
    account = account_service.require_account(db, scope_code, TargetLocator(emp_id=emp_id))
    account_service.delete_account(db, scope_code, account.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    id: uuid.UUID,
    decision: Decision = Depends(require_permission(DELETE_TOKENS, Action.DELETE, _load)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> Response:
    if not account_service.delete_account(db, tenant.comp_code, id):
        raise ResourceNotFound("Account not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
