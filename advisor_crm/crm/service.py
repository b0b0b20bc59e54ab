from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Session

from advisor_crm import audit, events
from advisor_crm.core.errors import ValidationError
from advisor_crm.crm.enums import OpportunityStage, RiskProfile
from advisor_crm.crm.models import CRMActivity, CRMClient, CRMOpportunity, CRMPartner, CRMTransaction
from advisor_crm.crm.repositories import (
    ActivityStore,
    ClientStore,
    OpportunityStore,
    PartnerStore,
    RecordStore,
    TransactionStore,
)
from advisor_crm.crm.schemas import (
    ActivityCreate,
    ActivityRead,
    ActivityUpdate,
    ClientCreate,
    ClientRead,
    ClientUpdate,
    OpportunityCreate,
    OpportunityRead,
    OpportunityUpdate,
    PartnerCreate,
    PartnerRead,
    PartnerUpdate,
    TransactionCreate,
    TransactionRead,
    TransactionUpdate,
)
from advisor_crm.metrics import observe_crm_mutation, observe_stage_change
from advisor_crm.otel import crm_span


logger = logging.getLogger("app.crm")

ModelT = TypeVar("ModelT")
ReadT = TypeVar("ReadT", bound=BaseModel)

DEFAULT_FINANCIAL_PROFILE: dict[str, Any] = {
    "investorProfile": RiskProfile.MODERADO.value,
    "assetPreferences": [],
    "financialNeeds": [],
    "meetingAgendaSuggestions": [],
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_float(value: Decimal | float | int | None) -> float | None:
    if value is None:
        return None
    return float(value)


def to_amount(value: Decimal | float | int | None) -> float:
    converted = to_float(value)
    return 0.0 if converted is None else converted


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class ActorUser:
    user_id: str
    correlation_id: str | None = None


def require_fields(values: dict[str, Any], field_names: list[str], message: str) -> None:
    for field_name in field_names:
        value = values.get(field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(message)


class EntityService(Generic[ModelT, ReadT]):
    """Shared list/get/create/update/delete flow.

    Subclasses declare their store, required fields and the mapping between the
    wire schemas and the mapped model. Every mutation records an audit entry and
    publishes a ``crm.<entity>.<action>`` event.
    """

    entity_type = ""
    event_prefix = ""
    required_fields: list[str] = []
    required_message = "Campos obrigatórios ausentes."
    # Wire field name -> column name, for the few fields that differ.
    renamed_fields: dict[str, str] = {}

    def __init__(self, store: RecordStore[Any]) -> None:
        self.store = store

    def list(self, session: Session) -> list[ReadT]:
        return [self.to_read(record) for record in self.store.list(session)]

    def get(self, session: Session, record_id: uuid.UUID | str) -> ReadT:
        return self.to_read(self.store.get(session, record_id))

    def create(self, session: Session, actor_user: ActorUser, dto: BaseModel) -> ReadT:
        values = dto.model_dump()
        require_fields(values, self.required_fields, self.required_message)
        record = self.store.create(session, self.build_create_fields(values))
        created = self.to_read(record)
        self._record_mutation(actor_user, "create", str(record.id), None, created)
        return created

    def update(self, session: Session, actor_user: ActorUser, record_id: uuid.UUID | str, dto: BaseModel) -> ReadT:
        record_id = self.store.parse_id(record_id)
        values = dto.model_dump(exclude_unset=True)
        require_fields(
            values,
            [field_name for field_name in self.required_fields if field_name in values],
            self.required_message,
        )
        before = self.to_read(self.store.get(session, record_id))
        record = self.store.update(session, record_id, self._to_columns(values))
        updated = self.to_read(record)
        self._record_mutation(actor_user, "update", str(record_id), before, updated)
        return updated

    def delete(self, session: Session, actor_user: ActorUser, record_id: uuid.UUID | str) -> None:
        record_id = self.store.parse_id(record_id)
        before = self.to_read(self.store.get(session, record_id))
        self.store.delete(session, record_id)
        self._record_mutation(actor_user, "delete", str(record_id), before, None)

    def build_create_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        return self._to_columns(values)

    def to_read(self, record: Any) -> ReadT:
        raise NotImplementedError

    def _to_columns(self, values: dict[str, Any]) -> dict[str, Any]:
        return {self.renamed_fields.get(key, key): value for key, value in values.items()}

    def _record_mutation(
        self,
        actor_user: ActorUser,
        action: str,
        entity_id: str,
        before: ReadT | None,
        after: ReadT | None,
    ) -> None:
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=entity_id,
            action=action,
            before=before.model_dump(mode="json", by_alias=True) if before is not None else None,
            after=after.model_dump(mode="json", by_alias=True) if after is not None else None,
            correlation_id=actor_user.correlation_id,
        )
        events.publish(
            events.build_envelope(
                f"{self.event_prefix}.{action}d",
                actor_user.user_id,
                {"entity_id": entity_id},
                correlation_id=actor_user.correlation_id,
            )
        )
        observe_crm_mutation(self.entity_type, action)
        logger.info("crm.mutation", extra={"resource": self.entity_type, "operation": action, "entity_id": entity_id})


class PartnerService(EntityService[CRMPartner, PartnerRead]):
    entity_type = "crm.partner"
    event_prefix = "crm.partner"
    required_fields = ["name"]
    required_message = "Nome é obrigatório."

    def __init__(self) -> None:
        super().__init__(PartnerStore())

    def build_create_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        fields = self._to_columns(values)
        fields["responsible_persons"] = values.get("responsible_persons") or []
        fields["indicated_clients_count"] = values.get("indicated_clients_count") or 0
        fields["total_volume"] = values.get("total_volume") or 0
        return fields

    def to_read(self, record: CRMPartner) -> PartnerRead:
        return PartnerRead(
            id=record.id,
            name=record.name,
            phone=record.phone,
            address=record.address,
            responsible_persons=record.responsible_persons or [],
            contract=record.contract,
            indicated_clients_count=record.indicated_clients_count or 0,
            total_volume=to_amount(record.total_volume),
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )


class ClientService(EntityService[CRMClient, ClientRead]):
    entity_type = "crm.client"
    event_prefix = "crm.client"
    required_fields = ["name", "email", "type"]
    required_message = "Nome, e-mail e tipo são obrigatórios."
    renamed_fields = {"partners": "partner_data"}

    def __init__(self) -> None:
        super().__init__(ClientStore())
        self.partner_service = PartnerService()

    def build_create_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        fields = self._to_columns(values)
        fields["wallet_value"] = values.get("wallet_value") or 0
        if fields.get("last_activity") is None:
            fields["last_activity"] = utcnow()
        return fields

    def to_read(self, record: CRMClient) -> ClientRead:
        return ClientRead(
            id=record.id,
            name=record.name,
            email=record.email,
            type=record.type,
            phone=record.phone,
            cpf=record.cpf,
            cnpj=record.cnpj,
            sector=record.sector,
            citizenship=record.citizenship,
            service_preferences=record.service_preferences or [],
            advisors=record.advisors or [],
            compliance_status=record.compliance_status,
            wallet_value=to_amount(record.wallet_value),
            financial_profile=record.financial_profile or dict(DEFAULT_FINANCIAL_PROFILE),
            address=record.address or None,
            contact_persons=record.contact_persons or [],
            partners=record.partner_data or [],
            interaction_history=record.interaction_history or [],
            reminders=record.reminders or [],
            partner_id=record.partner_id,
            partner=self.partner_service.to_read(record.partner) if record.partner is not None else None,
            last_activity=as_utc(record.last_activity),
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )


class OpportunityService(EntityService[CRMOpportunity, OpportunityRead]):
    entity_type = "crm.opportunity"
    event_prefix = "crm.opportunity"
    required_fields = ["title", "client_id", "stage"]
    required_message = "Título, cliente e estágio são obrigatórios."

    def __init__(self) -> None:
        super().__init__(OpportunityStore())

    def build_create_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        fields = self._to_columns(values)
        fields["estimated_value"] = values.get("estimated_value") or 0
        fields["probability"] = values.get("probability") or 0
        return fields

    def update(
        self,
        session: Session,
        actor_user: ActorUser,
        record_id: uuid.UUID | str,
        dto: BaseModel,
    ) -> OpportunityRead:
        record_id = self.store.parse_id(record_id)
        values = dto.model_dump(exclude_unset=True)
        if "stage" not in values:
            return super().update(session, actor_user, record_id, dto)

        with crm_span(
            "crm.opportunity.update_stage",
            opportunity_id=record_id,
            stage=values["stage"],
            correlation_id=actor_user.correlation_id,
        ):
            previous_stage = self.store.get(session, record_id).stage
            updated = super().update(session, actor_user, record_id, dto)
            if previous_stage != updated.stage:
                observe_stage_change(updated.stage)
                events.publish(
                    events.build_envelope(
                        events.OPPORTUNITY_STAGE_CHANGED,
                        actor_user.user_id,
                        {
                            "opportunity_id": str(updated.id),
                            "from_stage": previous_stage,
                            "to_stage": updated.stage,
                            "won": updated.stage == OpportunityStage.GANHO.value,
                        },
                        correlation_id=actor_user.correlation_id,
                    )
                )
            return updated

    def to_read(self, record: CRMOpportunity) -> OpportunityRead:
        client_name = record.client.name if record.client is not None else ""
        return OpportunityRead(
            id=record.id,
            title=record.title,
            client_id=record.client_id,
            client_name=client_name,
            source=record.source,
            estimated_value=to_amount(record.estimated_value),
            stage=record.stage,
            probability=record.probability or 0,
            expected_close_date=as_utc(record.expected_close_date),
            responsible=record.responsible,
            next_action=record.next_action,
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )


class ActivityService(EntityService[CRMActivity, ActivityRead]):
    entity_type = "crm.activity"
    event_prefix = "crm.activity"
    required_fields = ["title", "due_date", "priority", "status", "type"]
    required_message = "Campos obrigatórios ausentes."

    def __init__(self) -> None:
        super().__init__(ActivityStore())

    def build_create_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        fields = self._to_columns(values)
        fields["guests"] = values.get("guests") or []
        return fields

    def to_read(self, record: CRMActivity) -> ActivityRead:
        return ActivityRead(
            id=record.id,
            title=record.title,
            type=record.type,
            client_id=record.client_id,
            opportunity_id=record.opportunity_id,
            assessor=record.assessor,
            guests=record.guests or [],
            location=record.location,
            due_date=as_utc(record.due_date),
            priority=record.priority,
            status=record.status,
            notes=record.notes,
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )


class TransactionService(EntityService[CRMTransaction, TransactionRead]):
    entity_type = "crm.transaction"
    event_prefix = "crm.transaction"
    required_fields = ["client_id", "type", "status"]
    required_message = "Cliente, tipo e status são obrigatórios."

    def __init__(self) -> None:
        super().__init__(TransactionStore())

    def build_create_fields(self, values: dict[str, Any]) -> dict[str, Any]:
        fields = self._to_columns(values)
        fields["value"] = values.get("value") or 0
        fields["unit_value"] = values.get("unit_value") or None
        fields["quantity"] = values.get("quantity") or None
        if fields.get("timestamp") is None:
            fields["timestamp"] = utcnow()
        return fields

    def to_read(self, record: CRMTransaction) -> TransactionRead:
        client_name = record.client.name if record.client is not None else ""
        return TransactionRead(
            id=record.id,
            client_id=record.client_id,
            client_name=client_name,
            type=record.type,
            status=record.status,
            product=record.product,
            value=to_amount(record.value),
            unit_value=to_float(record.unit_value),
            quantity=to_float(record.quantity),
            reservation_date=as_utc(record.reservation_date),
            liquidation_date=as_utc(record.liquidation_date),
            timestamp=as_utc(record.timestamp),
            institution=record.institution,
            doc_ref=record.doc_ref,
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )
