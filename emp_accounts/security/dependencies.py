from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable, Sequence

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from emp_accounts.db.session import get_db
from emp_accounts.errors import AuthorizationDenied, InvalidRequest, ResourceNotFound, TenantRequired
from emp_accounts.security.auth import bind_principal, extract_bearer_token
from emp_accounts.security.config import SecurityConfig
from emp_accounts.security.context import Principal, TenantContext
from emp_accounts.security.resolver import AccessRequest, Action, Decision, Outcome, Target, TargetLocator, resolve
from emp_accounts.settings import Settings, get_settings

logger = logging.getLogger(__name__)

EMP_ID_RE = re.compile(r"^[A-Za-z0-9_-]{3,50}$")

TargetLoader = Callable[[Session, "str | None", TargetLocator], "Target | None"]


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_principal(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Principal:
    """Bind the caller once per request; later dependencies reuse the cached result."""

    token = extract_bearer_token(request, config)
    principal = bind_principal(db, token, settings)
    request.state.principal = principal
    return principal


def get_tenant_context(
    request: Request,
    principal: Principal = Depends(get_principal),
    config: SecurityConfig = Depends(get_security_config),
) -> TenantContext:
    if config.is_elevated(principal.role_name):
        tenant = TenantContext(comp_code=None)
    elif not principal.comp_code:
        raise TenantRequired("No company context")
    else:
        tenant = TenantContext(comp_code=principal.comp_code)

    request.state.tenant = tenant
    return tenant


def effective_comp_code(tenant: TenantContext, requested: str | None) -> str | None:
    """
    Company used for reads: cross-tenant callers may narrow to one company,
    everyone else is pinned to their own.
    """

    if tenant.is_cross_tenant and requested and requested.strip():
        return requested.strip().upper()
    return tenant.comp_code


def insert_comp_code(principal: Principal, tenant: TenantContext, requested: str | None) -> str:
    """Company that owns a new row; cross-tenant callers default to their own company."""

    if tenant.is_cross_tenant:
        if requested and requested.strip():
            return requested.strip().upper()
        return principal.comp_code
    return tenant.comp_code


def parse_target_locator(request: Request) -> TargetLocator | None:
    """Validate identifiers in the path before anything is looked up."""

    params = request.path_params
    if "id" in params:
        try:
            return TargetLocator(id=uuid.UUID(str(params["id"])))
        except ValueError as exc:
            raise InvalidRequest("Invalid UUID") from exc
    if "emp_id" in params:
        emp_id = str(params["emp_id"])
        if not EMP_ID_RE.match(emp_id):
            raise InvalidRequest("Invalid emp_id: only letters, numbers, hyphen, underscore (3-50)")
        return TargetLocator(emp_id=emp_id)
    return None


async def read_declared_department(request: Request) -> uuid.UUID | None:
    try:
        payload = await request.json()
    except ValueError:
        # Empty or malformed body; validation in the handler reports it.
        return None
    if not isinstance(payload, dict) or payload.get("department_id") in (None, ""):
        return None
    try:
        return uuid.UUID(str(payload["department_id"]))
    except ValueError as exc:
        raise InvalidRequest("department_id must be a valid UUID (or null)") from exc


def require_permission(
    tokens: Sequence[str],
    action: Action,
    target_loader: TargetLoader | None = None,
) -> Callable:
    """
    Dependency factory gating an endpoint on any one of `tokens`.

    DENY and NOT_FOUND raise, so the route handler never runs. The returned
    Decision tells list handlers which scope filter to apply.
    """

    required = tuple(tokens)

    async def dependency(
        request: Request,
        principal: Principal = Depends(get_principal),
        tenant: TenantContext = Depends(get_tenant_context),
        config: SecurityConfig = Depends(get_security_config),
        db: Session = Depends(get_db),
    ) -> Decision:
        locator = parse_target_locator(request)
        declared_department = await read_declared_department(request) if action is Action.CREATE else None

        fetch_target = None
        if target_loader is not None and locator is not None:

            def fetch_target() -> Target | None:
                return target_loader(db, tenant.comp_code, locator)

        decision = await run_in_threadpool(
            resolve,
            principal,
            required,
            AccessRequest(action=action, declared_department_id=declared_department),
            fetch_target,
            config.policy,
        )

        if decision.outcome is Outcome.DENY:
            logger.info(
                "Permission denied user=%s role=%s action=%s path=%s reason=%s",
                principal.id,
                principal.role_name,
                action.value,
                request.url.path,
                decision.reason,
            )
            raise AuthorizationDenied(decision.reason or "Forbidden - insufficient permissions")
        if decision.outcome is Outcome.NOT_FOUND:
            logger.info("Permission check target missing user=%s path=%s", principal.id, request.url.path)
            raise ResourceNotFound(decision.reason or "Not found")

        request.state.decision = decision
        return decision

    return dependency
