from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from advisor_crm import audit, events
from advisor_crm.core.config import get_settings
from advisor_crm.core.database import Base, get_db
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
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_client(client: TestClient, correlation_id: str) -> dict:
    response = client.post(
        "/api/clients",
        json={"name": "Corr Client", "email": "corr@example.com", "type": "PJ"},
        headers={"X-Correlation-Id": correlation_id},
    )
    assert response.status_code == 201
    return response.json()


def test_generated_correlation_id_returned_on_errors(client: TestClient) -> None:
    response = client.get(f"/api/clients/{uuid.uuid4()}")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    uuid.UUID(header_value)
    assert response.json() == {"message": "Cliente não encontrado."}


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/clients/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"


def test_oversized_correlation_id_is_replaced(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Correlation-Id": "x" * 200})
    assert response.status_code == 200
    assert response.headers["x-correlation-id"] != "x" * 200


def test_audit_uses_request_correlation_id(client: TestClient) -> None:
    created = _create_client(client, "corr-audit-1")

    entries = audit.entries_for("crm.client", created["id"])
    assert entries
    assert entries[-1]["correlation_id"] == "corr-audit-1"


def test_event_envelope_includes_correlation_id(client: TestClient) -> None:
    _create_client(client, "corr-event-1")

    created_events = events.events_of_type("crm.client.created")
    assert created_events
    assert created_events[-1]["correlation_id"] == "corr-event-1"
