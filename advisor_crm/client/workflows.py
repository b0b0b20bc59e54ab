"""Page-level workflows for the opportunity board and the transaction desk.

Both run entirely on the client side. A stage change is one PUT; the onboarding
activities that follow a win are separate POSTs issued one after the other, so
a failure part-way leaves the earlier records in place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from advisor_crm.client.api_client import ApiError, CRMApiClient
from advisor_crm.client.state import AppState
from advisor_crm.crm.enums import (
    ALL_OPPORTUNITY_STAGES,
    ActivityPriority,
    ActivityStatus,
    ActivityType,
    OpportunityStage,
)
from advisor_crm.formatting import format_brl, format_date_br


logger = logging.getLogger("app.client")

ConfirmMove = Callable[[dict[str, Any], str], bool]

SYSTEM_ASSESSOR = "Sistema"
REMINDER_LEAD_DAYS = 2


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def onboarding_activities(opportunity: dict[str, Any], now: datetime) -> list[dict[str, Any]]:
    client_name = opportunity.get("clientName", "")
    common = {
        "clientId": opportunity.get("clientId"),
        "assessor": opportunity.get("responsible"),
        "status": ActivityStatus.A_FAZER.value,
    }
    return [
        {
            **common,
            "title": f"Coletar Documentos KYC - {client_name}",
            "type": ActivityType.OPERACIONAL.value,
            "dueDate": (now + timedelta(days=2)).isoformat(),
            "priority": ActivityPriority.ALTA.value,
            "notes": f"Início do processo de onboarding para a oportunidade: {opportunity.get('title', '')}",
        },
        {
            **common,
            "title": f"Agendar Reunião de Boas-Vindas - {client_name}",
            "type": ActivityType.REUNIAO.value,
            "dueDate": (now + timedelta(days=5)).isoformat(),
            "priority": ActivityPriority.MEDIA.value,
        },
        {
            **common,
            "title": f"Preparar plano de alocação inicial - {client_name}",
            "type": ActivityType.OPERACIONAL.value,
            "dueDate": (now + timedelta(days=7)).isoformat(),
            "priority": ActivityPriority.ALTA.value,
        },
    ]


class OpportunityBoard:
    def __init__(self, api: CRMApiClient, state: AppState, confirm: ConfirmMove) -> None:
        self.api = api
        self.state = state
        self.confirm = confirm
        self.opportunities: list[dict[str, Any]] = []
        self.clients: list[dict[str, Any]] = []
        self.error: str | None = None

    def load(self) -> None:
        self.error = None
        try:
            self.opportunities = self.api.list_opportunities()
            self.clients = self.api.list_clients()
        except ApiError as exc:
            self.error = exc.message
            self.state.show_snackbar("Não foi possível carregar as oportunidades.", "error")

    def opportunities_by_stage(self) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {stage.value: [] for stage in ALL_OPPORTUNITY_STAGES}
        for opportunity in self.opportunities:
            if opportunity.get("stage") in grouped:
                grouped[opportunity["stage"]].append(opportunity)
        return grouped

    def find(self, opportunity_id: str) -> dict[str, Any] | None:
        for opportunity in self.opportunities:
            if opportunity.get("id") == opportunity_id:
                return opportunity
        return None

    def add_opportunity(self, fields: dict[str, Any]) -> dict[str, Any]:
        try:
            created = self.api.create_opportunity(fields)
        except ApiError as exc:
            self.state.show_snackbar(exc.message, "error")
            raise
        self.opportunities.insert(0, created)
        self.state.show_snackbar("Oportunidade adicionada com sucesso!")
        return created

    def move_opportunity(self, opportunity_id: str, new_stage: OpportunityStage | str) -> dict[str, Any] | None:
        stage = OpportunityStage(new_stage).value
        opportunity = self.find(opportunity_id)
        if opportunity is None:
            logger.warning("client.opportunity_not_loaded", extra={"entity_id": opportunity_id})
            return None
        if opportunity.get("stage") == stage:
            return None
        if not self.confirm(opportunity, stage):
            return None

        try:
            updated = self.api.update_opportunity(opportunity_id, {"stage": stage})
            self.opportunities = [updated if item.get("id") == updated.get("id") else item for item in self.opportunities]
            if stage == OpportunityStage.GANHO.value:
                self.trigger_onboarding(updated)
            self.state.show_snackbar(f"Oportunidade movida para {stage}!")
        except ApiError as exc:
            self.state.show_snackbar(exc.message, "error")
            return None
        return updated

    def trigger_onboarding(self, opportunity: dict[str, Any], now: datetime | None = None) -> list[dict[str, Any]]:
        activities = onboarding_activities(opportunity, now or datetime.now(timezone.utc))
        created: list[dict[str, Any]] = []
        for fields in activities:
            try:
                created.append(self.state.add_activity(fields))
            except ApiError as exc:
                logger.warning(
                    "client.onboarding_activity_failed",
                    extra={"entity_id": opportunity.get("id"), "error": exc.message},
                )
        self.state.show_snackbar(f"Workflow de onboarding criado! {len(activities)} atividades foram geradas.")
        return created


class TransactionDesk:
    def __init__(self, api: CRMApiClient, state: AppState) -> None:
        self.api = api
        self.state = state
        self.transactions: list[dict[str, Any]] = []
        self.clients: list[dict[str, Any]] = []
        self.error: str | None = None

    def load(self) -> None:
        self.error = None
        try:
            self.transactions = self.api.list_transactions()
            self.clients = self.api.list_clients()
        except ApiError as exc:
            self.error = exc.message
            self.state.show_snackbar("Não foi possível carregar as transações.", "error")

    def add_transaction(self, fields: dict[str, Any]) -> dict[str, Any]:
        try:
            created = self.api.create_transaction(fields)
        except ApiError as exc:
            self.state.show_snackbar(exc.message, "error")
            raise
        self.transactions.insert(0, created)
        self.state.show_snackbar("Transação adicionada com sucesso!")
        self.create_operational_reminder(created)
        return created

    def create_operational_reminder(self, transaction: dict[str, Any]) -> dict[str, Any] | None:
        if not transaction.get("liquidationDate"):
            return None
        liquidation = _parse_timestamp(transaction["liquidationDate"])
        product = transaction.get("product") or {}
        value = transaction.get("value") or 0
        fields = {
            "title": f"Verificar recursos para {product.get('description', '')}",
            "type": ActivityType.OPERACIONAL.value,
            "clientId": transaction.get("clientId"),
            "assessor": SYSTEM_ASSESSOR,
            "dueDate": (liquidation - timedelta(days=REMINDER_LEAD_DAYS)).isoformat(),
            "priority": ActivityPriority.ALTA.value,
            "status": ActivityStatus.A_FAZER.value,
            "notes": (
                f"Lembrar cliente {transaction.get('clientName', '')} sobre a liquidação de "
                f"{format_brl(value)} em {format_date_br(liquidation)}."
            ),
        }
        try:
            created = self.state.add_activity(fields)
        except ApiError as exc:
            logger.warning(
                "client.operational_reminder_failed",
                extra={"entity_id": transaction.get("id"), "error": exc.message},
            )
            return None
        self.state.show_snackbar("Tarefa operacional criada automaticamente!")
        return created
