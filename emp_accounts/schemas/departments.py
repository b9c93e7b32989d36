from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DepartmentCreate(BaseModel):
    department_name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    status: Literal["active", "inactive"] = "active"

    # Honoured only for the cross-company role.
    comp_code: str | None = None


class DepartmentUpdate(BaseModel):
    department_name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    status: Literal["active", "inactive"] | None = None


class DepartmentStatusUpdate(BaseModel):
    status: Literal["active", "inactive"]


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    department_id: uuid.UUID
    department_name: str
    description: str | None
    status: str
    comp_code: str
    created_at: datetime
    updated_at: datetime
