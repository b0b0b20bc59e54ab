from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from advisor_crm.core.config import get_settings
from advisor_crm.core.database import Base, get_db
from advisor_crm.crm.models import CRMActivity, CRMClient, CRMOpportunity, CRMTransaction
from advisor_crm.crm.reports import ReportingService
from advisor_crm.formatting import format_brl
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


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    get_settings.cache_clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def seeded(db_session: Session) -> datetime:
    now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    moderate = CRMClient(name="Moderada", email="m@example.com", type="PF", compliance_status="Em Dia")
    aggressive = CRMClient(
        name="Arrojado",
        email="a@example.com",
        type="PF",
        compliance_status="Atrasado",
        financial_profile={"investorProfile": "Arrojado", "assetPreferences": []},
    )
    pending = CRMClient(name="Pendente", email="p@example.com", type="PJ")
    db_session.add_all([moderate, aggressive, pending])
    db_session.flush()

    db_session.add_all(
        [
            CRMOpportunity(title="A", client_id=moderate.id, stage="Ganho"),
            CRMOpportunity(title="B", client_id=aggressive.id, stage="Proposta"),
            CRMOpportunity(title="C", client_id=pending.id, stage="Perdido"),
        ]
    )
    db_session.add_all(
        [
            CRMTransaction(
                client_id=moderate.id,
                type="Aplicação",
                status="Liquidada",
                value=Decimal("1000"),
                timestamp=now - timedelta(days=2),
            ),
            CRMTransaction(
                client_id=aggressive.id,
                type="Resgate",
                status="Requer Aprovação",
                value=Decimal("250.50"),
                timestamp=now - timedelta(days=10),
            ),
            CRMTransaction(
                client_id=aggressive.id,
                type="Aplicação",
                status="Liquidada",
                value=Decimal("5000"),
                timestamp=datetime(2026, 6, 15, tzinfo=timezone.utc),
            ),
            CRMTransaction(
                client_id=pending.id,
                type="Aplicação",
                status="Liquidada",
                value=Decimal("7000"),
                timestamp=datetime(2026, 1, 10, tzinfo=timezone.utc),
            ),
        ]
    )
    due = now + timedelta(days=1)
    db_session.add_all(
        [
            CRMActivity(title="r1", type="Reunião", assessor="Ana", due_date=due, priority="Alta", status="A Fazer"),
            CRMActivity(title="r2", type="Reunião", assessor="Ana", due_date=due, priority="Alta", status="A Fazer"),
            CRMActivity(title="l1", type="Ligação", assessor="Ana", due_date=due, priority="Baixa", status="A Fazer"),
            CRMActivity(title="l2", type="Ligação", assessor="Bruno", due_date=due, priority="Baixa", status="A Fazer"),
            CRMActivity(title="l4", type="Ligação", assessor="Bruno", due_date=due, priority="Baixa", status="A Fazer"),
            CRMActivity(title="l3", type="Ligação", assessor=None, due_date=due, priority="Baixa", status="A Fazer"),
            CRMActivity(title="e1", type="E-mail", assessor="Bruno", due_date=due, priority="Baixa", status="A Fazer"),
            CRMActivity(title="o1", type="Operacional", assessor="Carla", due_date=due, priority="Alta", status="A Fazer"),
        ]
    )
    db_session.commit()
    return now


def test_dashboard_aggregates(db_session: Session, seeded: datetime) -> None:
    report = ReportingService().dashboard(db_session, now=seeded)

    assert report.revenue_30_days == pytest.approx(1250.5)
    assert report.conversion_rate == 33
    assert report.pending_approval_amount == pytest.approx(250.5)
    assert report.pending_kyc == 2
    assert [flow.month for flow in report.monthly_flows] == [
        "2026-05",
        "2026-06",
        "2026-07",
        "2026-08",
        "2026-09",
        "2026-10",
    ]
    assert report.monthly_flows[1].aplicacoes == 5000
    assert report.monthly_flows[-1].aplicacoes == 1000
    assert report.monthly_flows[-1].resgates == pytest.approx(250.5)
    assert [(row.name, row.count) for row in report.advisor_ranking] == [("Ana", 3), ("Bruno", 2), ("Desconhecido", 1)]


def test_monthly_flows_cross_year_boundary() -> None:
    flows = ReportingService().monthly_flows([], datetime(2026, 2, 1, tzinfo=timezone.utc))
    assert [flow.month for flow in flows] == ["2025-09", "2025-10", "2025-11", "2025-12", "2026-01", "2026-02"]


def test_dashboard_endpoint(client: TestClient, seeded: datetime) -> None:
    response = client.get("/api/reports/dashboard")
    assert response.status_code == 200
    body = response.json()
    assert body["conversionRate"] == 33
    assert body["pendingKyc"] == 2
    assert len(body["monthlyFlows"]) == 6
    assert body["advisorRanking"][0] == {"name": "Ana", "count": 3}


def test_activities_by_advisor(client: TestClient, seeded: datetime) -> None:
    rows = client.get("/api/reports/activities-by-advisor").json()
    by_name = {row["name"]: row for row in rows}
    assert by_name["Ana"] == {"name": "Ana", "reunioes": 2, "ligacoes": 1}
    assert by_name["Bruno"] == {"name": "Bruno", "reunioes": 0, "ligacoes": 2}
    assert "Carla" not in by_name

    filtered = client.get("/api/reports/activities-by-advisor", params={"advisor": "Bruno"}).json()
    assert filtered == [{"name": "Bruno", "reunioes": 0, "ligacoes": 2}]


def test_compliance_report(client: TestClient, seeded: datetime) -> None:
    response = client.get("/api/reports/compliance")
    assert response.status_code == 200
    body = response.json()
    assert [row["name"] for row in body["highRiskClients"]] == ["Arrojado"]
    assert [row["status"] for row in body["pendingTransactions"]] == ["Requer Aprovação"]
    assert len(body["auditTrail"]) == 4
    first = body["auditTrail"][0]
    assert first["user"] == "Moderada"
    assert first["action"] == "registrou uma transação Aplicação"
    assert first["details"] == "Valor: R$ 1.000,00 - Status: Liquidada"


def test_format_brl() -> None:
    assert format_brl(0) == "R$ 0,00"
    assert format_brl(1234567.891) == "R$ 1.234.567,89"
