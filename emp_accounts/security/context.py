from __future__ import annotations

import uuid
from dataclasses import dataclass

from emp_accounts.security.permissions import PermissionSet


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller, resolved once per request from the live account row.

    Role and user type names are upper-cased here; every downstream comparison
    uses the canonical form. `permissions` is the role's permission snapshot for
    this request.
    """

    id: uuid.UUID
    emp_id: str
    fullname: str
    username: str
    email: str

    role_id: uuid.UUID | None
    role_name: str
    user_type_id: uuid.UUID | None
    user_type_name: str

    department_id: uuid.UUID | None
    comp_code: str
    status: str

    permissions: PermissionSet

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict (permissions excluded)."""
        return {
            "id": str(self.id),
            "emp_id": self.emp_id,
            "fullname": self.fullname,
            "username": self.username,
            "email": self.email,
            "role_id": str(self.role_id) if self.role_id else None,
            "role_name": self.role_name,
            "user_type_id": str(self.user_type_id) if self.user_type_id else None,
            "user_type_name": self.user_type_name,
            "department_id": str(self.department_id) if self.department_id else None,
            "comp_code": self.comp_code,
            "status": self.status,
        }


@dataclass(frozen=True)
class TenantContext:
    """Company the request is confined to; `comp_code=None` means no isolation filter."""

    comp_code: str | None

    @property
    def is_cross_tenant(self) -> bool:
        return self.comp_code is None
