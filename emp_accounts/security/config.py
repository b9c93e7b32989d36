from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class AuthConfig(BaseModel):
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class PolicyConfig(BaseModel):
    elevated_role: str = "SUPER_ADMIN"
    department_resource: str = "departments"
    self_scope_actions: list[str] = Field(default_factory=lambda: ["read", "update"])
    department_scope_actions: list[str] = Field(
        default_factory=lambda: ["create", "read", "update", "disable", "delete"]
    )

    @field_validator("elevated_role")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class RoleSeed(BaseModel):
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    roles: dict[str, RoleSeed] = Field(default_factory=dict)
    user_types: list[str] = Field(default_factory=list)

    @field_validator("roles")
    @classmethod
    def _upper_role_names(cls, value: dict[str, RoleSeed]) -> dict[str, RoleSeed]:
        return {name.strip().upper(): seed for name, seed in value.items()}

    @field_validator("user_types")
    @classmethod
    def _upper_type_names(cls, value: list[str]) -> list[str]:
        return [name.strip().upper() for name in value]


@dataclass(frozen=True)
class ResolverPolicy:
    """
    Fixed inputs of the permission resolver.

    Kept separate from the YAML model so the resolver can be used (and tested)
    without loading any configuration.
    """

    elevated_role: str = "SUPER_ADMIN"
    department_resource: str = "departments"
    self_scope_actions: frozenset[str] = frozenset({"read", "update"})
    department_scope_actions: frozenset[str] = frozenset({"create", "read", "update", "disable", "delete"})


class SecurityConfig:
    """
    Runtime helper around the validated config.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model
        self.policy = ResolverPolicy(
            elevated_role=model.policy.elevated_role,
            department_resource=model.policy.department_resource,
            self_scope_actions=frozenset(model.policy.self_scope_actions),
            department_scope_actions=frozenset(model.policy.department_scope_actions),
        )

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def is_elevated(self, role_name: str) -> bool:
        return role_name.upper() == self.policy.elevated_role


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
