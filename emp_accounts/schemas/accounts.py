from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

EMP_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


class AccountCreate(BaseModel):
    emp_id: str = Field(min_length=3, max_length=50, pattern=EMP_ID_PATTERN)
    fullname: str = Field(min_length=1, max_length=200)
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)

    department_id: uuid.UUID | None = None
    role_id: uuid.UUID | None = None
    user_type_id: uuid.UUID | None = None
    status: Literal["active", "disabled"] = "active"

    # Honoured only for the cross-company role.
    comp_code: str | None = None


class AccountUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    emp_id: str | None = Field(default=None, min_length=3, max_length=50, pattern=EMP_ID_PATTERN)
    fullname: str | None = Field(default=None, min_length=1, max_length=200)
    username: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=72)

    department_id: uuid.UUID | None = None
    role_id: uuid.UUID | None = None
    user_type_id: uuid.UUID | None = None
    status: Literal["active", "disabled"] | None = None

    @field_validator("emp_id", "fullname", "username", "email", "password", "role_id", "user_type_id", "status")
    @classmethod
    def _not_null(cls, value):
        # Only department_id may be cleared with an explicit null.
        if value is None:
            raise ValueError("may not be null")
        return value


class AccountFilters(BaseModel):
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    department_id: uuid.UUID | None = None
    user_type_id: uuid.UUID | None = None
    status: Literal["active", "disabled"] | None = None
    search: str | None = None

    @field_validator("search")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    emp_id: str
    fullname: str
    username: str
    email: str
    department_id: uuid.UUID | None
    user_type_id: uuid.UUID | None
    role_id: uuid.UUID | None
    status: str
    comp_code: str
    created_at: datetime
    updated_at: datetime
