from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from advisor_crm.core.auth import (
    AuthUser,
    authenticate,
    get_current_user,
    issue_session,
    register_user,
    revoke_session,
)
from advisor_crm.core.config import get_settings
from advisor_crm.core.database import get_db
from advisor_crm.core.errors import UnauthorizedError
from advisor_crm.crm.api import ERROR_RESPONSES
from advisor_crm.crm.models import CRMUser
from advisor_crm.crm.schemas import AuthResponse, LoginRequest, MeResponse, RegisterRequest, UserRead
from advisor_crm.metrics import observe_login


logger = logging.getLogger("app.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"], responses=ERROR_RESPONSES)


def _user_read(user: AuthUser | CRMUser) -> UserRead:
    return UserRead(id=user.id, name=user.name, username=user.username)


def _json(status_code: int, body: AuthResponse | MeResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(dto: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    user = register_user(db, username=dto.username, password=dto.password, name=dto.name)
    return AuthResponse(message="Usuário registrado com sucesso!", user=_user_read(user))


@router.post("/login", response_model=AuthResponse)
def login(dto: LoginRequest, db: Session = Depends(get_db)) -> JSONResponse:
    settings = get_settings()
    try:
        user = authenticate(db, username=dto.username, password=dto.password)
    except UnauthorizedError as exc:
        observe_login("failure")
        logger.info("auth.login_failed", extra={"username": dto.username, "error": exc.message})
        raise

    token = issue_session(db, user)
    observe_login("success")
    logger.info("auth.login", extra={"username": user.username})
    response = _json(
        status.HTTP_200_OK,
        AuthResponse(message="Login realizado com sucesso!", user=_user_read(user)),
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.app_env.lower() in {"prod", "production"},
    )
    return response


@router.post("/logout", response_model=AuthResponse)
def logout(request: Request, db: Session = Depends(get_db)) -> JSONResponse:
    settings = get_settings()
    revoke_session(db, request.cookies.get(settings.session_cookie_name))
    response = _json(status.HTTP_200_OK, AuthResponse(message="Logout realizado com sucesso!"))
    response.delete_cookie(key=settings.session_cookie_name)
    return response


@router.get("/me", response_model=MeResponse)
def me(user: AuthUser = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=_user_read(user))
