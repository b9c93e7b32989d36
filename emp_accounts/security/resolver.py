"""
Permission resolution.

Given the bound principal, the tokens an endpoint accepts (any one of them is
enough), the action being attempted and a lazy way to load the target, decide
one of:

    ALLOW            unrestricted within the tenant context
    ALLOW_FILTERED   allowed through an own / own-dept token; list callers must
                     narrow their query to `decision.scope`
    DENY             with a human-readable reason
    NOT_FOUND        a scoped check needed the target and it does not exist

Rules, tried per required token in the order the endpoint declares them, first
terminal result wins:

1. elevated role: allow everything (tenant isolation is lifted separately);
2. exact token held: allow, though a held scoped token (`read_own`,
   `read:own-dept`) is still bound by the scope rules below;
3. department administration tokens: exact match only, otherwise deny;
4. own-scope widening (read/update family): never for lists; otherwise the
   target must be the caller's own record;
5. own-dept widening: creates must target the caller's department (or none),
   lists are allowed and filtered downstream, single targets must sit in the
   caller's department.

Falling through every token denies. The resolver does not catch storage errors
raised by the fetcher; those are infrastructure failures, not denials.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from emp_accounts.security.config import ResolverPolicy
from emp_accounts.security.context import Principal
from emp_accounts.security.permissions import PermissionToken, Scope

logger = logging.getLogger(__name__)

DEFAULT_POLICY = ResolverPolicy()


class Action(str, Enum):
    LIST = "list"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DISABLE = "disable"
    DELETE = "delete"


class Outcome(str, Enum):
    ALLOW = "allow"
    ALLOW_FILTERED = "allow_filtered"
    DENY = "deny"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    scope: Scope = Scope.UNSCOPED
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome in (Outcome.ALLOW, Outcome.ALLOW_FILTERED)

    @classmethod
    def allow(cls) -> Decision:
        return cls(Outcome.ALLOW)

    @classmethod
    def filtered(cls, scope: Scope) -> Decision:
        return cls(Outcome.ALLOW_FILTERED, scope=scope)

    @classmethod
    def deny(cls, reason: str) -> Decision:
        return cls(Outcome.DENY, reason=reason)

    @classmethod
    def not_found(cls, reason: str) -> Decision:
        return cls(Outcome.NOT_FOUND, reason=reason)


class Target(Protocol):
    id: uuid.UUID
    department_id: uuid.UUID | None


TargetFetcher = Callable[[], "Target | None"]


@dataclass(frozen=True)
class TargetLocator:
    """How a request addresses its target: internal id or business employee id."""

    id: uuid.UUID | None = None
    emp_id: str | None = None


@dataclass(frozen=True)
class AccessRequest:
    """What is being attempted; `declared_department_id` only matters for creates."""

    action: Action
    declared_department_id: uuid.UUID | None = None


def _entity_label(resource: str) -> str:
    singular = resource[:-1] if resource.endswith("s") else resource
    return singular.replace("_", " ").capitalize()


class _LazyTarget:
    """Loads the target at most once per resolution."""

    def __init__(self, fetch: TargetFetcher | None):
        self._fetch = fetch
        self._loaded = False
        self._value: Target | None = None

    def get(self) -> Target | None:
        if not self._loaded:
            self._value = self._fetch() if self._fetch is not None else None
            self._loaded = True
        return self._value


def resolve(
    principal: Principal,
    required: Sequence[str],
    access: AccessRequest,
    fetch_target: TargetFetcher | None = None,
    policy: ResolverPolicy = DEFAULT_POLICY,
) -> Decision:
    if principal.role_name.upper() == policy.elevated_role:
        return Decision.allow()

    target = _LazyTarget(fetch_target)
    permissions = principal.permissions

    for raw in required:
        token = PermissionToken.parse(raw)
        if token is None:
            logger.warning("Endpoint requires unrecognised permission token %r", raw)
            continue

        if permissions.has_exact(token):
            if token.scope is Scope.OWN:
                return _resolve_own(principal, token, access, target)
            if token.scope is Scope.OWN_DEPT:
                return _resolve_own_department(principal, token, access, target)
            return Decision.allow()

        if token.resource == policy.department_resource:
            return Decision.deny("Forbidden - insufficient permission to manage departments")

        if token.scope is not Scope.UNSCOPED:
            continue

        if token.action in policy.self_scope_actions and permissions.grants(token.resource, token.action, Scope.OWN):
            return _resolve_own(principal, token, access, target)

        if token.action in policy.department_scope_actions and permissions.grants(
            token.resource, token.action, Scope.OWN_DEPT
        ):
            return _resolve_own_department(principal, token, access, target)

    return Decision.deny("Forbidden - insufficient permissions")


def _resolve_own(principal: Principal, token: PermissionToken, access: AccessRequest, target: _LazyTarget) -> Decision:
    if access.action is Action.LIST:
        return Decision.deny(f"Forbidden - you cannot list all {token.resource}")

    found = target.get()
    if found is None:
        return Decision.not_found(f"{_entity_label(token.resource)} not found")
    if found.id != principal.id:
        return Decision.deny(f"You can only access your own {_entity_label(token.resource).lower()}")
    return Decision.filtered(Scope.OWN)


def _resolve_own_department(
    principal: Principal, token: PermissionToken, access: AccessRequest, target: _LazyTarget
) -> Decision:
    if access.action is Action.CREATE:
        # A caller without a department may create department-less records.
        declared = access.declared_department_id
        if declared is not None and declared != principal.department_id:
            return Decision.deny("Managers can only create in their own department")
        return Decision.filtered(Scope.OWN_DEPT)

    if access.action is Action.LIST:
        return Decision.filtered(Scope.OWN_DEPT)

    found = target.get()
    if found is None:
        return Decision.not_found(f"{_entity_label(token.resource)} not found")
    if found.department_id != principal.department_id:
        return Decision.deny(f"You can only manage {token.resource} in your own department")
    return Decision.filtered(Scope.OWN_DEPT)
