from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from emp_accounts.db.session import get_db
from emp_accounts.schemas.auth import LoginRequest, LoginResponse, PrincipalOut
from emp_accounts.security.context import Principal
from emp_accounts.security.dependencies import get_principal
from emp_accounts.services import auth as auth_service
from emp_accounts.settings import Settings, get_settings

router = APIRouter(tags=["auth"])


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    return auth_service.login(db, payload, settings)


@router.get("/me", response_model=PrincipalOut)
def me(principal: Principal = Depends(get_principal)) -> PrincipalOut:
    return PrincipalOut.model_validate(principal.to_dict())
