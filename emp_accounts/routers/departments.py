from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from emp_accounts.db.session import get_db
from emp_accounts.errors import ResourceNotFound
from emp_accounts.schemas.departments import (
    DepartmentCreate,
    DepartmentOut,
    DepartmentStatusUpdate,
    DepartmentUpdate,
)
from emp_accounts.security.context import Principal, TenantContext
from emp_accounts.security.dependencies import (
    effective_comp_code,
    get_principal,
    get_tenant_context,
    insert_comp_code,
    require_permission,
)
from emp_accounts.security.resolver import Action, Decision
from emp_accounts.services import departments as department_service

router = APIRouter(prefix="/departments", tags=["departments"])


def _found(department):
    if department is None:
        raise ResourceNotFound("Department not found")
    return department


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreate,
    decision: Decision = Depends(require_permission(["departments:create"], Action.CREATE)),
    principal: Principal = Depends(get_principal),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    comp_code = insert_comp_code(principal, tenant, payload.comp_code)
    return department_service.create_department(db, comp_code, payload)


@router.get("", response_model=list[DepartmentOut])
def list_departments(
    comp_code: str | None = None,
    decision: Decision = Depends(require_permission(["departments:read"], Action.LIST)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return department_service.list_departments(db, effective_comp_code(tenant, comp_code))


@router.get("/{id}", response_model=DepartmentOut)
def get_department(
    id: uuid.UUID,
    decision: Decision = Depends(require_permission(["departments:read"], Action.READ)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _found(department_service.get_department(db, tenant.comp_code, id))


@router.put("/{id}", response_model=DepartmentOut)
def update_department(
    id: uuid.UUID,
    payload: DepartmentUpdate,
    decision: Decision = Depends(require_permission(["departments:update"], Action.UPDATE)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _found(department_service.update_department(db, tenant.comp_code, id, payload))


@router.patch("/{id}/status", response_model=DepartmentOut)
def update_department_status(
    id: uuid.UUID,
    payload: DepartmentStatusUpdate,
    decision: Decision = Depends(require_permission(["departments:update"], Action.UPDATE)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _found(department_service.update_department_status(db, tenant.comp_code, id, payload.status))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    id: uuid.UUID,
    decision: Decision = Depends(require_permission(["departments:delete"], Action.DELETE)),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> Response:
    if not department_service.delete_department(db, tenant.comp_code, id):
        raise ResourceNotFound("Department not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
