from __future__ import annotations

import json
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from advisor_crm.client.api_client import DEFAULT_ERROR_MESSAGE, ApiError, CRMApiClient
from advisor_crm.client.state import AppState
from advisor_crm.client.workflows import TransactionDesk
from advisor_crm.context import correlation_scope
from advisor_crm.core.config import get_settings
from advisor_crm.core.database import Base, get_db
from advisor_crm.main import app


class FlakyTestClient(TestClient):
    """Answers requests matching ``(method, path)`` with a canned error response."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.broken: dict[tuple[str, str], httpx.Response | type[Exception]] = {}
        self.sent: list[tuple[str, str, Any]] = []
        self.last_request: httpx.Request | None = None

    def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.sent.append((request.method, request.url.path, body))
        self.last_request = request
        canned = self.broken.get((request.method, request.url.path))
        if isinstance(canned, httpx.Response):
            return httpx.Response(canned.status_code, content=canned.content, request=request)
        if canned is not None:
            raise canned("connection refused")
        return super().send(request, **kwargs)


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


@pytest.fixture()
def http_client(db_session: Session) -> Generator[FlakyTestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    with FlakyTestClient(app, base_url="http://testserver/api") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def api(http_client: FlakyTestClient) -> CRMApiClient:
    return CRMApiClient(http_client)


@pytest.fixture()
def desk(api: CRMApiClient) -> TransactionDesk:
    return TransactionDesk(api, AppState(api=api))


@pytest.fixture()
def client_id(api: CRMApiClient) -> str:
    return api.create_client({"name": "Rafael Souza", "email": "rafael@example.com", "type": "PF"})["id"]


def _transaction(client_id: str, **overrides: Any) -> dict[str, Any]:
    fields = {
        "clientId": client_id,
        "type": "Aplicação",
        "status": "Pendente",
        "product": {"description": "Tesouro IPCA+ 2035", "type": "Renda Fixa"},
        "value": 15250.5,
        "liquidationDate": "2026-11-10T12:00:00+00:00",
    }
    fields.update(overrides)
    return fields


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_transaction_with_liquidation_creates_reminder(
    desk: TransactionDesk,
    client_id: str,
    api: CRMApiClient,
) -> None:
    created = desk.add_transaction(_transaction(client_id))

    assert desk.transactions[0]["id"] == created["id"]
    activities = api.list_activities()
    assert len(activities) == 1
    reminder = activities[0]
    assert reminder["title"] == "Verificar recursos para Tesouro IPCA+ 2035"
    assert reminder["type"] == "Operacional"
    assert reminder["priority"] == "Alta"
    assert reminder["status"] == "A Fazer"
    assert reminder["assessor"] == "Sistema"
    assert reminder["clientId"] == client_id
    assert _parse(reminder["dueDate"]) == datetime(2026, 11, 8, 12, 0, tzinfo=timezone.utc)
    assert reminder["notes"] == "Lembrar cliente Rafael Souza sobre a liquidação de R$ 15.250,50 em 10/11/2026."

    assert desk.state.activities[0]["id"] == reminder["id"]
    assert [snackbar.message for snackbar in desk.state.snackbars] == [
        "Transação adicionada com sucesso!",
        "Tarefa operacional criada automaticamente!",
    ]


def test_transaction_without_liquidation_creates_no_reminder(
    desk: TransactionDesk,
    client_id: str,
    http_client: FlakyTestClient,
) -> None:
    desk.add_transaction(_transaction(client_id, liquidationDate=None))

    assert [entry for entry in http_client.sent if entry[1] == "/api/activities"] == []
    assert [snackbar.message for snackbar in desk.state.snackbars] == ["Transação adicionada com sucesso!"]


def test_reminder_failure_leaves_transaction_in_place(
    desk: TransactionDesk,
    client_id: str,
    http_client: FlakyTestClient,
    api: CRMApiClient,
) -> None:
    http_client.broken[("POST", "/api/activities")] = httpx.Response(500, json={"message": "Erro interno"})

    created = desk.add_transaction(_transaction(client_id))

    assert created["clientName"] == "Rafael Souza"
    assert [row["id"] for row in api.list_transactions()] == [created["id"]]
    assert desk.state.activities == []
    assert [snackbar.message for snackbar in desk.state.snackbars] == ["Transação adicionada com sucesso!"]


def test_failed_transaction_shows_error_and_raises(desk: TransactionDesk, client_id: str) -> None:
    with pytest.raises(ApiError) as exc_info:
        desk.add_transaction({"clientId": client_id, "type": "Resgate"})

    assert exc_info.value.status_code == 400
    assert desk.transactions == []
    assert desk.state.snackbar is not None
    assert desk.state.snackbar.kind == "error"
    assert desk.state.snackbar.message == "Cliente, tipo e status são obrigatórios."


def test_reminder_due_date_crosses_month(desk: TransactionDesk) -> None:
    transaction = {
        "id": "t1",
        "clientId": None,
        "clientName": "Cliente",
        "value": 0,
        "liquidationDate": "2026-12-01T00:00:00Z",
    }
    reminder = desk.create_operational_reminder(transaction)
    assert reminder is not None
    assert _parse(reminder["dueDate"]) == datetime(2026, 11, 29, tzinfo=timezone.utc)
    assert reminder["title"] == "Verificar recursos para "
    assert reminder["notes"].endswith("R$ 0,00 em 01/12/2026.")


def test_api_error_without_message_body_uses_default(api: CRMApiClient, http_client: FlakyTestClient) -> None:
    http_client.broken[("GET", "/api/clients")] = httpx.Response(502, content=b"bad gateway")

    with pytest.raises(ApiError) as exc_info:
        api.list_clients()
    assert exc_info.value.message == DEFAULT_ERROR_MESSAGE
    assert exc_info.value.status_code == 502


def test_transport_error_becomes_api_error(api: CRMApiClient, http_client: FlakyTestClient) -> None:
    http_client.broken[("GET", "/api/partners")] = httpx.ConnectError

    with pytest.raises(ApiError) as exc_info:
        api.list_partners()
    assert exc_info.value.message == DEFAULT_ERROR_MESSAGE
    assert exc_info.value.status_code is None


def test_load_activities_failure_yields_empty_list(api: CRMApiClient, http_client: FlakyTestClient) -> None:
    state = AppState(api=api)
    state.activities = [{"id": "stale"}]
    http_client.broken[("GET", "/api/activities")] = httpx.Response(500, json={"message": "Erro interno"})

    assert state.load_activities() == []
    assert state.activities == []


def test_notifications_are_prepended_unread(api: CRMApiClient) -> None:
    state = AppState(api=api)
    first = state.add_notification({"title": "Primeira", "message": "a"})
    second = state.add_notification({"title": "Segunda", "message": "b"})

    assert [item["title"] for item in state.notifications] == ["Segunda", "Primeira"]
    assert first["id"].startswith("notif_")
    assert first["id"] != second["id"]
    assert first["read"] is False
    assert _parse(first["date"]) <= datetime.now(timezone.utc) + timedelta(seconds=1)


def test_session_round_trip_and_logout_clears_cookies(api: CRMApiClient, http_client: FlakyTestClient) -> None:
    assert api.me() is None

    api.register("rafa", "s3nha-forte", "Rafael")
    api.login("rafa", "s3nha-forte")
    assert api.me()["username"] == "rafa"

    http_client.broken[("POST", "/api/auth/logout")] = httpx.Response(500, json={"message": "Erro interno"})
    api.logout()

    assert len(http_client.cookies) == 0
    assert api.me() is None


def test_login_failure_carries_server_message(api: CRMApiClient) -> None:
    with pytest.raises(ApiError) as exc_info:
        api.login("ninguem", "x")
    assert exc_info.value.message == "Usuário não encontrado"
    assert exc_info.value.status_code == 401


def test_client_forwards_active_correlation_id(api: CRMApiClient, http_client: FlakyTestClient) -> None:
    with correlation_scope("desk-corr-1"):
        api.list_transactions()
    assert http_client.last_request is not None
    assert http_client.last_request.headers["x-correlation-id"] == "desk-corr-1"

    api.list_transactions()
    assert "x-correlation-id" not in http_client.last_request.headers


def test_client_update_and_delete_through_api(api: CRMApiClient, client_id: str) -> None:
    updated = api.update_client(client_id, {"phone": "+55 21 98888-7777"})
    assert updated["phone"] == "+55 21 98888-7777"
    assert updated["name"] == "Rafael Souza"

    assert api.delete_client(client_id) is None
    assert api.list_clients() == []

    with pytest.raises(ApiError) as exc_info:
        api.delete_client(client_id)
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Cliente não encontrado."


def test_completing_generated_reminder(desk: TransactionDesk, client_id: str, api: CRMApiClient) -> None:
    desk.add_transaction(_transaction(client_id))
    reminder = api.list_activities()[0]

    completed = api.update_activity(reminder["id"], {"status": "Concluída"})

    assert completed["status"] == "Concluída"
    assert completed["title"] == "Verificar recursos para Tesouro IPCA+ 2035"
    assert [row["status"] for row in api.list_activities()] == ["Concluída"]
