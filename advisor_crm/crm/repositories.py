from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute, Session, selectinload

from advisor_crm.core.database import Base
from advisor_crm.core.errors import NotFoundError, StoreError
from advisor_crm.crm.models import CRMActivity, CRMClient, CRMOpportunity, CRMPartner, CRMTransaction


logger = logging.getLogger("app.crm.store")

ModelT = TypeVar("ModelT", bound=Base)


class RecordStore(Generic[ModelT]):
    """Entity-scoped CRUD over one mapped model.

    Lists are ordered by ``recency_column`` descending and never paginated.
    ``include`` names relationships that are eagerly loaded so they can be
    inlined into responses.
    """

    resource = ""
    not_found_message = "Registro não encontrado."

    def __init__(
        self,
        model: type[ModelT],
        recency_column: InstrumentedAttribute[Any],
        include: Sequence[InstrumentedAttribute[Any]] = (),
    ) -> None:
        self.model = model
        self.recency_column = recency_column
        self.include = tuple(include)

    def list(self, session: Session) -> list[ModelT]:
        stmt = select(self.model).order_by(self.recency_column.desc())
        for relation in self.include:
            stmt = stmt.options(selectinload(relation))
        try:
            return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise self._store_error("list", exc) from exc

    def parse_id(self, record_id: uuid.UUID | str) -> uuid.UUID:
        """Ids that are not uuids cannot name a stored record, so they read as not found."""
        if isinstance(record_id, uuid.UUID):
            return record_id
        try:
            return uuid.UUID(record_id)
        except ValueError:
            raise NotFoundError(self.not_found_message) from None

    def get(self, session: Session, record_id: uuid.UUID | str) -> ModelT:
        try:
            record = session.get(self.model, self.parse_id(record_id))
        except SQLAlchemyError as exc:
            raise self._store_error("get", exc) from exc
        if record is None:
            raise NotFoundError(self.not_found_message)
        return record

    def create(self, session: Session, fields: dict[str, Any]) -> ModelT:
        record = self.model(**fields)
        try:
            session.add(record)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._store_error("create", exc) from exc
        session.refresh(record)
        return record

    def update(self, session: Session, record_id: uuid.UUID | str, fields: dict[str, Any]) -> ModelT:
        record = self.get(session, record_id)
        for field_name, value in fields.items():
            setattr(record, field_name, value)
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._store_error("update", exc) from exc
        session.refresh(record)
        return record

    def delete(self, session: Session, record_id: uuid.UUID | str) -> None:
        record = self.get(session, record_id)
        try:
            session.delete(record)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._store_error("delete", exc) from exc

    def _store_error(self, operation: str, exc: Exception) -> StoreError:
        logger.exception(
            "store.failed",
            extra={"resource": self.resource, "operation": operation, "error": str(exc)[:500]},
        )
        return StoreError(f"Erro ao acessar {self.resource}.")


class ClientStore(RecordStore[CRMClient]):
    resource = "crm.client"
    not_found_message = "Cliente não encontrado."

    def __init__(self) -> None:
        super().__init__(CRMClient, CRMClient.created_at, include=[CRMClient.partner])


class PartnerStore(RecordStore[CRMPartner]):
    resource = "crm.partner"
    not_found_message = "Parceiro não encontrado."

    def __init__(self) -> None:
        super().__init__(CRMPartner, CRMPartner.created_at)


class OpportunityStore(RecordStore[CRMOpportunity]):
    resource = "crm.opportunity"
    not_found_message = "Oportunidade não encontrada."

    def __init__(self) -> None:
        super().__init__(CRMOpportunity, CRMOpportunity.created_at, include=[CRMOpportunity.client])


class TransactionStore(RecordStore[CRMTransaction]):
    resource = "crm.transaction"
    not_found_message = "Transação não encontrada."

    def __init__(self) -> None:
        super().__init__(CRMTransaction, CRMTransaction.timestamp, include=[CRMTransaction.client])


class ActivityStore(RecordStore[CRMActivity]):
    resource = "crm.activity"
    not_found_message = "Atividade não encontrada."

    def __init__(self) -> None:
        super().__init__(CRMActivity, CRMActivity.due_date)
