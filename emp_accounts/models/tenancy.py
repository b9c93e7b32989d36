from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from emp_accounts.db.base import Base, utc_now
from emp_accounts.models.security import Role, UserType

TENANT_COLUMN = "comp_code"


class TenantScoped:
    """
    Mixin for tables whose rows belong to exactly one company.

    `emp_accounts.db.tenant` keys its isolation criteria off this class, so any
    mapped subclass is filtered automatically.
    """

    comp_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)


class Department(TenantScoped, Base):
    __tablename__ = "departments"

    department_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    department_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)


class Account(TenantScoped, Base):
    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("comp_code", "emp_id", name="uq_accounts_comp_code_emp_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    emp_id: Mapped[str] = mapped_column(String(50), nullable=False)

    fullname: Mapped[str] = mapped_column(String(200), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)

    department_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("departments.department_id"), nullable=True, index=True
    )
    user_type_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("user_types.id"), nullable=True)
    role_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("roles.id"), nullable=True)

    # active | disabled; only active accounts can bind a session.
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    role: Mapped[Role | None] = relationship()
    user_type: Mapped[UserType | None] = relationship()
