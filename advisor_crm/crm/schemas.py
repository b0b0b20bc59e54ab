from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from advisor_crm.crm.enums import (
    ActivityPriority,
    ActivityStatus,
    ActivityType,
    ClientType,
    ComplianceStatus,
    OpportunityStage,
    TransactionStatus,
    TransactionType,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def _datetimes_to_utc(cls, value: Any) -> Any:
        # Offsets are folded into UTC here; the store keeps the wall-clock value only.
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value


class ErrorRead(BaseModel):
    message: str


class UserRead(CamelModel):
    id: UUID
    name: str
    username: str


class RegisterRequest(CamelModel):
    username: str | None = None
    password: str | None = None
    name: str | None = None


class LoginRequest(CamelModel):
    username: str | None = None
    password: str | None = None


class AuthResponse(CamelModel):
    message: str
    user: UserRead | None = None


class MeResponse(CamelModel):
    user: UserRead


class PartnerCreate(CamelModel):
    name: str | None = None
    phone: str | None = None
    address: dict[str, Any] | None = None
    responsible_persons: list[Any] = Field(default_factory=list)
    contract: dict[str, Any] | None = None
    indicated_clients_count: int = 0
    total_volume: float | None = 0


class PartnerUpdate(CamelModel):
    name: str | None = None
    phone: str | None = None
    address: dict[str, Any] | None = None
    responsible_persons: list[Any] | None = None
    contract: dict[str, Any] | None = None
    indicated_clients_count: int | None = None
    total_volume: float | None = None


class PartnerRead(CamelModel):
    id: UUID
    name: str
    phone: str | None
    address: dict[str, Any] | None
    responsible_persons: list[Any]
    contract: dict[str, Any] | None
    indicated_clients_count: int
    total_volume: float
    created_at: datetime
    updated_at: datetime


class ClientCreate(CamelModel):
    name: str | None = None
    email: str | None = None
    type: ClientType | None = None
    phone: str | None = None
    cpf: str | None = None
    cnpj: str | None = None
    sector: str | None = None
    citizenship: str | None = None
    service_preferences: list[Any] = Field(default_factory=list)
    advisors: list[str] = Field(default_factory=list)
    compliance_status: ComplianceStatus = ComplianceStatus.PENDENTE
    wallet_value: float | None = 0
    financial_profile: dict[str, Any] | None = None
    address: dict[str, Any] | None = None
    contact_persons: list[Any] = Field(default_factory=list)
    partners: list[Any] = Field(default_factory=list)
    partner_id: UUID | None = None
    interaction_history: list[Any] = Field(default_factory=list)
    reminders: list[Any] = Field(default_factory=list)
    last_activity: datetime | None = None


class ClientUpdate(CamelModel):
    name: str | None = None
    email: str | None = None
    type: ClientType | None = None
    phone: str | None = None
    cpf: str | None = None
    cnpj: str | None = None
    sector: str | None = None
    citizenship: str | None = None
    service_preferences: list[Any] | None = None
    advisors: list[str] | None = None
    compliance_status: ComplianceStatus | None = None
    wallet_value: float | None = None
    financial_profile: dict[str, Any] | None = None
    address: dict[str, Any] | None = None
    contact_persons: list[Any] | None = None
    partners: list[Any] | None = None
    partner_id: UUID | None = None
    interaction_history: list[Any] | None = None
    reminders: list[Any] | None = None
    last_activity: datetime | None = None


class ClientRead(CamelModel):
    id: UUID
    name: str
    email: str
    type: str
    phone: str | None
    cpf: str | None
    cnpj: str | None
    sector: str | None
    citizenship: str | None
    service_preferences: list[Any]
    advisors: list[Any]
    compliance_status: str
    wallet_value: float
    financial_profile: dict[str, Any]
    address: dict[str, Any] | None
    contact_persons: list[Any]
    partners: list[Any]
    interaction_history: list[Any]
    reminders: list[Any]
    partner_id: UUID | None
    partner: PartnerRead | None
    last_activity: datetime | None
    created_at: datetime
    updated_at: datetime


class OpportunityCreate(CamelModel):
    title: str | None = None
    client_id: UUID | None = None
    stage: OpportunityStage | None = None
    source: str | None = None
    estimated_value: float | None = 0
    probability: int | None = Field(default=0, ge=0, le=100)
    expected_close_date: datetime | None = None
    responsible: str | None = None
    next_action: str | None = None


class OpportunityUpdate(CamelModel):
    title: str | None = None
    client_id: UUID | None = None
    stage: OpportunityStage | None = None
    source: str | None = None
    estimated_value: float | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close_date: datetime | None = None
    responsible: str | None = None
    next_action: str | None = None


class OpportunityRead(CamelModel):
    id: UUID
    title: str
    client_id: UUID
    client_name: str
    source: str | None
    estimated_value: float
    stage: OpportunityStage
    probability: int
    expected_close_date: datetime | None
    responsible: str | None
    next_action: str | None
    created_at: datetime
    updated_at: datetime


class ActivityCreate(CamelModel):
    title: str | None = None
    type: ActivityType | None = None
    client_id: UUID | None = None
    opportunity_id: UUID | None = None
    assessor: str | None = None
    guests: list[Any] = Field(default_factory=list)
    location: str | None = None
    due_date: datetime | None = None
    priority: ActivityPriority | None = None
    status: ActivityStatus | None = None
    notes: str | None = None


class ActivityUpdate(CamelModel):
    title: str | None = None
    type: ActivityType | None = None
    client_id: UUID | None = None
    opportunity_id: UUID | None = None
    assessor: str | None = None
    guests: list[Any] | None = None
    location: str | None = None
    due_date: datetime | None = None
    priority: ActivityPriority | None = None
    status: ActivityStatus | None = None
    notes: str | None = None


class ActivityRead(CamelModel):
    id: UUID
    title: str
    type: str
    client_id: UUID | None
    opportunity_id: UUID | None
    assessor: str | None
    guests: list[Any]
    location: str | None
    due_date: datetime
    priority: str
    status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime


class TransactionCreate(CamelModel):
    client_id: UUID | None = None
    type: TransactionType | None = None
    status: TransactionStatus | None = None
    product: dict[str, Any] | None = None
    value: float | None = 0
    unit_value: float | None = None
    quantity: float | None = None
    reservation_date: datetime | None = None
    liquidation_date: datetime | None = None
    timestamp: datetime | None = None
    institution: str | None = None
    doc_ref: str | None = None


class TransactionUpdate(CamelModel):
    client_id: UUID | None = None
    type: TransactionType | None = None
    status: TransactionStatus | None = None
    product: dict[str, Any] | None = None
    value: float | None = None
    unit_value: float | None = None
    quantity: float | None = None
    reservation_date: datetime | None = None
    liquidation_date: datetime | None = None
    timestamp: datetime | None = None
    institution: str | None = None
    doc_ref: str | None = None


class TransactionRead(CamelModel):
    id: UUID
    client_id: UUID
    client_name: str
    type: str
    status: str
    product: dict[str, Any] | None
    value: float
    unit_value: float | None
    quantity: float | None
    reservation_date: datetime | None
    liquidation_date: datetime | None
    timestamp: datetime
    institution: str | None
    doc_ref: str | None
    created_at: datetime
    updated_at: datetime


class MonthlyFlowRead(CamelModel):
    month: str
    aplicacoes: float
    resgates: float


class AdvisorRankingRead(CamelModel):
    name: str
    count: int


class DashboardReportRead(CamelModel):
    revenue_30_days: float
    conversion_rate: int
    pending_approval_amount: float
    pending_kyc: int
    monthly_flows: list[MonthlyFlowRead]
    advisor_ranking: list[AdvisorRankingRead]


class AdvisorActivityRead(CamelModel):
    name: str
    reunioes: int
    ligacoes: int


class ComplianceAuditEntryRead(CamelModel):
    id: UUID
    user: str
    action: str
    date: datetime
    details: str


class ComplianceReportRead(CamelModel):
    high_risk_clients: list[ClientRead]
    pending_transactions: list[TransactionRead]
    audit_trail: list[ComplianceAuditEntryRead]
