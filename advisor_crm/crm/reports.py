from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from advisor_crm.core.database import get_db
from advisor_crm.crm.api import ERROR_RESPONSES, get_actor_user
from advisor_crm.crm.enums import (
    ActivityType,
    ComplianceStatus,
    OpportunityStage,
    RiskProfile,
    TransactionStatus,
    TransactionType,
)
from advisor_crm.crm.schemas import (
    ActivityRead,
    AdvisorActivityRead,
    AdvisorRankingRead,
    ComplianceAuditEntryRead,
    ComplianceReportRead,
    DashboardReportRead,
    MonthlyFlowRead,
    TransactionRead,
)
from advisor_crm.crm.service import (
    ActivityService,
    ActorUser,
    ClientService,
    OpportunityService,
    TransactionService,
    utcnow,
)
from advisor_crm.formatting import format_brl


UNKNOWN_ADVISOR = "Desconhecido"
CHART_MONTHS = 6
RANKING_SIZE = 3
AUDIT_TRAIL_SIZE = 5
_CONTACT_TYPES = {ActivityType.REUNIAO.value, ActivityType.LIGACAO.value}
_HIGH_RISK_PROFILES = {RiskProfile.ARROJADO.value, RiskProfile.AGRESSIVO.value}
_PENDING_KYC_STATUSES = {ComplianceStatus.PENDENTE.value, ComplianceStatus.ATRASADO.value}


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _sum_values(transactions: list[TransactionRead]) -> float:
    return sum(transaction.value for transaction in transactions)


def _contact_activities(activities: list[ActivityRead]) -> list[ActivityRead]:
    return [activity for activity in activities if activity.type in _CONTACT_TYPES]


@dataclass(slots=True)
class ReportingService:
    client_service: ClientService = field(default_factory=ClientService)
    opportunity_service: OpportunityService = field(default_factory=OpportunityService)
    transaction_service: TransactionService = field(default_factory=TransactionService)
    activity_service: ActivityService = field(default_factory=ActivityService)

    def dashboard(self, session: Session, *, now: datetime | None = None) -> DashboardReportRead:
        current = now or utcnow()
        clients = self.client_service.list(session)
        opportunities = self.opportunity_service.list(session)
        transactions = self.transaction_service.list(session)
        activities = self.activity_service.list(session)

        cutoff = current - timedelta(days=30)
        revenue_30_days = _sum_values([tx for tx in transactions if tx.timestamp >= cutoff])

        conversion_rate = 0
        if opportunities:
            won = sum(1 for opportunity in opportunities if opportunity.stage == OpportunityStage.GANHO.value)
            conversion_rate = round(won / len(opportunities) * 100)

        pending_approval_amount = _sum_values(
            [tx for tx in transactions if tx.status == TransactionStatus.REQUER_APROVACAO.value]
        )
        pending_kyc = sum(1 for client in clients if client.compliance_status in _PENDING_KYC_STATUSES)

        return DashboardReportRead(
            revenue_30_days=revenue_30_days,
            conversion_rate=conversion_rate,
            pending_approval_amount=pending_approval_amount,
            pending_kyc=pending_kyc,
            monthly_flows=self.monthly_flows(transactions, current),
            advisor_ranking=self.advisor_ranking(activities),
        )

    def monthly_flows(self, transactions: list[TransactionRead], now: datetime) -> list[MonthlyFlowRead]:
        flows: list[MonthlyFlowRead] = []
        for offset in range(-(CHART_MONTHS - 1), 1):
            year, month = _shift_month(now.year, now.month, offset)
            in_month = [tx for tx in transactions if tx.timestamp.year == year and tx.timestamp.month == month]
            flows.append(
                MonthlyFlowRead(
                    month=f"{year:04d}-{month:02d}",
                    aplicacoes=_sum_values([tx for tx in in_month if tx.type == TransactionType.APLICACAO.value]),
                    resgates=_sum_values([tx for tx in in_month if tx.type == TransactionType.RESGATE.value]),
                )
            )
        return flows

    def advisor_ranking(self, activities: list[ActivityRead]) -> list[AdvisorRankingRead]:
        counts = Counter(activity.assessor or UNKNOWN_ADVISOR for activity in _contact_activities(activities))
        return [AdvisorRankingRead(name=name, count=count) for name, count in counts.most_common(RANKING_SIZE)]

    def activities_by_advisor(self, session: Session, *, advisor: str | None = None) -> list[AdvisorActivityRead]:
        rows: dict[str, AdvisorActivityRead] = {}
        for activity in _contact_activities(self.activity_service.list(session)):
            if advisor and activity.assessor != advisor:
                continue
            name = activity.assessor or UNKNOWN_ADVISOR
            row = rows.setdefault(name, AdvisorActivityRead(name=name, reunioes=0, ligacoes=0))
            if activity.type == ActivityType.REUNIAO.value:
                row.reunioes += 1
            else:
                row.ligacoes += 1
        return list(rows.values())

    def compliance(self, session: Session) -> ComplianceReportRead:
        clients = self.client_service.list(session)
        transactions = self.transaction_service.list(session)
        high_risk_clients = [
            client for client in clients if client.financial_profile.get("investorProfile") in _HIGH_RISK_PROFILES
        ]
        pending_transactions = [
            tx for tx in transactions if tx.status == TransactionStatus.REQUER_APROVACAO.value
        ]
        audit_trail = [
            ComplianceAuditEntryRead(
                id=tx.id,
                user=tx.client_name,
                action=f"registrou uma transação {tx.type}",
                date=tx.timestamp,
                details=f"Valor: {format_brl(tx.value)} - Status: {tx.status}",
            )
            for tx in transactions[:AUDIT_TRAIL_SIZE]
        ]
        return ComplianceReportRead(
            high_risk_clients=high_risk_clients,
            pending_transactions=pending_transactions,
            audit_trail=audit_trail,
        )


reporting_service = ReportingService()

router = APIRouter(prefix="/api/reports", tags=["reports"], responses=ERROR_RESPONSES)


@router.get("/dashboard", response_model=DashboardReportRead)
def dashboard(db: Session = Depends(get_db), user: ActorUser = Depends(get_actor_user)) -> DashboardReportRead:
    return reporting_service.dashboard(db)


@router.get("/activities-by-advisor", response_model=list[AdvisorActivityRead])
def activities_by_advisor(
    advisor: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> list[AdvisorActivityRead]:
    return reporting_service.activities_by_advisor(db, advisor=advisor)


@router.get("/compliance", response_model=ComplianceReportRead)
def compliance(db: Session = Depends(get_db), user: ActorUser = Depends(get_actor_user)) -> ComplianceReportRead:
    return reporting_service.compliance(db)
