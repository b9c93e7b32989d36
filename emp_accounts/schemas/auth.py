from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username_or_email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    comp_code: str = Field(min_length=1)


class PrincipalOut(BaseModel):
    id: uuid.UUID
    emp_id: str
    fullname: str
    username: str
    email: str
    department_id: uuid.UUID | None
    role_id: uuid.UUID | None = None
    role_name: str
    user_type_name: str | None = None
    comp_code: str
    status: str | None = None


class LoginResponse(BaseModel):
    token: str
    user: PrincipalOut
