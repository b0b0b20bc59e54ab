from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from advisor_crm import audit
from advisor_crm.core.auth import hash_password, register_user, verify_password
from advisor_crm.core.config import get_settings
from advisor_crm.core.database import Base, get_db
from advisor_crm.core.errors import ValidationError
from advisor_crm.crm.models import CRMUser, CRMUserSession
from advisor_crm.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _register(client: TestClient, username: str = "ana", password: str = "s3nha-forte", name: str = "Ana Lima"):
    return client.post("/api/auth/register", json={"username": username, "password": password, "name": name})


def test_password_hashing_round_trip() -> None:
    hashed = hash_password("segredo")
    assert hashed != "segredo"
    assert verify_password("segredo", hashed)
    assert not verify_password("outro", hashed)
    assert not verify_password("segredo", "not-a-bcrypt-hash")


def test_register_returns_user_without_hash(client: TestClient, db_session: Session) -> None:
    response = _register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Usuário registrado com sucesso!"
    assert set(body["user"]) == {"id", "name", "username"}

    stored = db_session.scalar(select(CRMUser).where(CRMUser.username == "ana"))
    assert stored is not None
    assert stored.password_hash != "s3nha-forte"


def test_register_validation(client: TestClient) -> None:
    missing = client.post("/api/auth/register", json={"username": "ana", "password": "x"})
    assert missing.status_code == 400
    assert missing.json() == {"message": "Todos os campos são obrigatórios."}

    assert _register(client).status_code == 201
    duplicate = _register(client, name="Outra Ana")
    assert duplicate.status_code == 400
    assert duplicate.json() == {"message": "Este nome de usuário já está em uso."}


def test_register_race_on_username_reports_taken(
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db_session.add(CRMUser(username="ana", name="Ana Lima", password_hash=hash_password("x")))
    db_session.commit()

    with monkeypatch.context() as patched:
        # The other registration lands between the lookup and the insert.
        patched.setattr(db_session, "scalar", lambda *args, **kwargs: None)
        with pytest.raises(ValidationError) as exc_info:
            register_user(db_session, username="ana", password="s3nha-forte", name="Outra Ana")

    assert exc_info.value.message == "Este nome de usuário já está em uso."
    assert db_session.scalars(select(CRMUser)).all()[0].name == "Ana Lima"
    assert len(db_session.scalars(select(CRMUser)).all()) == 1


def test_login_failures_name_the_reason(client: TestClient) -> None:
    _register(client)

    unknown = client.post("/api/auth/login", json={"username": "bruno", "password": "x"})
    assert unknown.status_code == 401
    assert unknown.json() == {"message": "Usuário não encontrado"}

    wrong = client.post("/api/auth/login", json={"username": "ana", "password": "errada"})
    assert wrong.status_code == 401
    assert wrong.json() == {"message": "Senha inválida"}

    empty = client.post("/api/auth/login", json={})
    assert empty.status_code == 401
    assert empty.json() == {"message": "Credenciais inválidas."}


def test_login_me_logout_flow(client: TestClient, db_session: Session) -> None:
    _register(client)
    cookie_name = get_settings().session_cookie_name

    assert client.get("/api/auth/me").status_code == 401

    login = client.post("/api/auth/login", json={"username": "ana", "password": "s3nha-forte"})
    assert login.status_code == 200
    assert login.json()["message"] == "Login realizado com sucesso!"
    assert cookie_name in login.cookies
    assert "httponly" in login.headers["set-cookie"].lower()

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "ana"

    logout = client.post("/api/auth/logout")
    assert logout.status_code == 200
    assert logout.json()["message"] == "Logout realizado com sucesso!"

    user_session = db_session.scalar(select(CRMUserSession))
    assert user_session is not None
    assert user_session.revoked_at is not None

    unauthenticated = client.get("/api/auth/me")
    assert unauthenticated.status_code == 401
    assert unauthenticated.json() == {"message": "Não autenticado."}


def test_revoked_cookie_is_not_accepted_again(client: TestClient) -> None:
    _register(client)
    client.post("/api/auth/login", json={"username": "ana", "password": "s3nha-forte"})
    cookie_name = get_settings().session_cookie_name
    token = client.cookies.get(cookie_name)
    assert token

    client.post("/api/auth/logout")
    client.cookies.set(cookie_name, token)
    assert client.get("/api/auth/me").status_code == 401


def test_expired_session_is_rejected(client: TestClient, db_session: Session) -> None:
    _register(client)
    client.post("/api/auth/login", json={"username": "ana", "password": "s3nha-forte"})

    user_session = db_session.scalar(select(CRMUserSession))
    assert user_session is not None
    user_session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db_session.commit()

    assert client.get("/api/auth/me").status_code == 401


def test_tampered_cookie_is_rejected(client: TestClient) -> None:
    client.cookies.set(get_settings().session_cookie_name, "not-a-token")
    assert client.get("/api/auth/me").status_code == 401


def test_entity_routes_allow_anonymous_by_default(client: TestClient) -> None:
    assert client.get("/api/clients").status_code == 200
    created = client.post("/api/clients", json={"name": "Anônimo", "email": "a@example.com", "type": "PF"})
    assert created.status_code == 201
    assert audit.audit_entries[-1]["actor_user_id"] == "anonymous"


def test_auth_required_rejects_anonymous_and_audits_user(
    client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("AUTH_REQUIRED", "true")
    get_settings.cache_clear()

    anonymous = client.get("/api/clients")
    assert anonymous.status_code == 401
    assert anonymous.json() == {"message": "Não autenticado."}

    _register(client)
    client.post("/api/auth/login", json={"username": "ana", "password": "s3nha-forte"})
    created = client.post("/api/clients", json={"name": "Cliente", "email": "c@example.com", "type": "PJ"})
    assert created.status_code == 201
    assert audit.audit_entries[-1]["actor_user_id"] == "ana"
