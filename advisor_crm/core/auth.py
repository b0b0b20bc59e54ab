"""Username/password identity and server-side sessions.

A login creates a ``CRMUserSession`` row and hands the browser a signed cookie
that carries the session id. The signature only proves the cookie was issued
here; the row decides whether the session is still alive, so logout and expiry
take effect immediately.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.requests import Request

from advisor_crm.core.config import get_settings
from advisor_crm.core.database import get_db
from advisor_crm.core.errors import UnauthorizedError, ValidationError
from advisor_crm.crm.models import CRMUser, CRMUserSession


logger = logging.getLogger("app.auth")

BCRYPT_ROUNDS = 10


@dataclass
class AuthUser:
    id: uuid.UUID
    name: str
    username: str


def hash_password(plaintext: str) -> str:
    return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plaintext: str, stored_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        logger.warning("auth.invalid_hash")
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def to_auth_user(user: CRMUser) -> AuthUser:
    return AuthUser(id=user.id, name=user.name, username=user.username)


def issue_session(session: Session, user: CRMUser) -> str:
    settings = get_settings()
    expires_at = _utcnow() + timedelta(seconds=settings.session_ttl_seconds)
    user_session = CRMUserSession(user_id=user.id, expires_at=expires_at)
    session.add(user_session)
    session.commit()
    return jwt.encode(
        {"sid": str(user_session.id), "sub": str(user.id), "exp": int(expires_at.timestamp())},
        settings.session_secret,
        algorithm=settings.session_algorithm,
    )


def _decode_session_id(token: str) -> uuid.UUID | None:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
        return uuid.UUID(str(payload.get("sid")))
    except (JWTError, ValueError):
        return None


def resolve_session(session: Session, token: str | None) -> CRMUserSession | None:
    if not token:
        return None
    session_id = _decode_session_id(token)
    if session_id is None:
        return None
    user_session = session.scalar(select(CRMUserSession).where(CRMUserSession.id == session_id))
    if user_session is None or user_session.revoked_at is not None:
        return None
    if _aware(user_session.expires_at) <= _utcnow():
        return None
    return user_session


def revoke_session(session: Session, token: str | None) -> None:
    user_session = resolve_session(session, token)
    if user_session is None:
        return
    user_session.revoked_at = _utcnow()
    session.commit()


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> AuthUser | None:
    token = request.cookies.get(get_settings().session_cookie_name)
    user_session = resolve_session(db, token)
    if user_session is None or user_session.user is None:
        return None
    return to_auth_user(user_session.user)


def get_current_user(user: AuthUser | None = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise UnauthorizedError("Não autenticado.")
    return user


def register_user(session: Session, *, username: str | None, password: str | None, name: str | None) -> CRMUser:
    if not username or not password or not name:
        raise ValidationError("Todos os campos são obrigatórios.")
    existing = session.scalar(select(CRMUser).where(CRMUser.username == username))
    if existing is not None:
        raise ValidationError("Este nome de usuário já está em uso.")
    user = CRMUser(username=username, name=name, password_hash=hash_password(password))
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same username.
        session.rollback()
        raise ValidationError("Este nome de usuário já está em uso.") from None
    session.refresh(user)
    logger.info("auth.registered", extra={"username": username})
    return user


def authenticate(session: Session, *, username: str | None, password: str | None) -> CRMUser:
    if not username or not password:
        raise UnauthorizedError("Credenciais inválidas.")
    user = session.scalar(select(CRMUser).where(CRMUser.username == username))
    if user is None:
        raise UnauthorizedError("Usuário não encontrado")
    if not verify_password(password, user.password_hash):
        raise UnauthorizedError("Senha inválida")
    return user
