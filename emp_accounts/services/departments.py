from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from emp_accounts.db.base import utc_now
from emp_accounts.db.tenant import scoped_insert, scoped_read, scoped_write
from emp_accounts.errors import BadRequest, ConflictError
from emp_accounts.models.tenancy import Account, Department
from emp_accounts.schemas.departments import DepartmentCreate, DepartmentUpdate

logger = logging.getLogger(__name__)


def create_department(db: Session, comp_code: str, payload: DepartmentCreate) -> Department:
    name = payload.department_name.strip()
    if not name:
        raise BadRequest("department_name is required")

    fields = {
        "department_name": name,
        "description": (payload.description or "").strip() or None,
        "status": payload.status,
    }
    department = scoped_insert(db, Department, fields, comp_code)
    db.commit()
    logger.info("Department created id=%s comp_code=%s", department.department_id, comp_code)
    return department


def list_departments(db: Session, comp_code: str | None) -> list[Department]:
    stmt = select(Department).order_by(Department.department_name.asc())
    return list(scoped_read(db, stmt, comp_code).scalars())


def get_department(db: Session, comp_code: str | None, department_id: uuid.UUID) -> Department | None:
    stmt = select(Department).where(Department.department_id == department_id)
    return scoped_read(db, stmt, comp_code).scalar_one_or_none()


def _apply(db: Session, comp_code: str | None, department_id: uuid.UUID, values: dict) -> Department | None:
    values["updated_at"] = utc_now()
    stmt = (
        update(Department)
        .where(Department.department_id == department_id)
        .values(**values)
        .returning(Department)
    )
    department = scoped_write(db, stmt, comp_code).scalar_one_or_none()
    db.commit()
    return department


def update_department(
    db: Session, comp_code: str | None, department_id: uuid.UUID, payload: DepartmentUpdate
) -> Department | None:
    changes = payload.model_dump(exclude_unset=True)
    values: dict = {}

    if changes.get("department_name") is not None:
        name = changes["department_name"].strip()
        if not name:
            raise BadRequest("department_name may not be blank")
        values["department_name"] = name
    if "description" in changes:
        values["description"] = (changes["description"] or "").strip() or None
    if changes.get("status") is not None:
        values["status"] = changes["status"]

    if not values:
        raise BadRequest("No fields to update")
    return _apply(db, comp_code, department_id, values)


def update_department_status(
    db: Session, comp_code: str | None, department_id: uuid.UUID, status: str
) -> Department | None:
    if status not in ("active", "inactive"):
        raise BadRequest("Invalid status")
    return _apply(db, comp_code, department_id, {"status": status})


def delete_department(db: Session, comp_code: str | None, department_id: uuid.UUID) -> bool:
    in_use = select(Account.id).where(Account.department_id == department_id).limit(1)
    if scoped_read(db, in_use, comp_code).first() is not None:
        raise ConflictError("Department still has accounts assigned")

    stmt = delete(Department).where(Department.department_id == department_id).returning(Department.department_id)
    try:
        deleted = scoped_write(db, stmt, comp_code).first() is not None
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Department still has accounts assigned") from exc
    if deleted:
        logger.info("Department deleted id=%s", department_id)
    return deleted
