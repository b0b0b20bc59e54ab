from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from advisor_crm.context import CORRELATION_HEADER, get_correlation_id
from advisor_crm.core.auth import AuthUser, get_optional_user
from advisor_crm.core.config import get_settings
from advisor_crm.core.database import get_db
from advisor_crm.core.errors import CRMError, UnauthorizedError
from advisor_crm.crm.schemas import (
    ActivityCreate,
    ActivityRead,
    ActivityUpdate,
    ClientCreate,
    ClientRead,
    ClientUpdate,
    ErrorRead,
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
from advisor_crm.crm.service import (
    ActivityService,
    ActorUser,
    ClientService,
    OpportunityService,
    PartnerService,
    TransactionService,
)


logger = logging.getLogger("app.crm")

ERROR_RESPONSES = {
    400: {"model": ErrorRead},
    401: {"model": ErrorRead},
    404: {"model": ErrorRead},
    500: {"model": ErrorRead},
}

clients_router = APIRouter(prefix="/api/clients", tags=["crm.clients"], responses=ERROR_RESPONSES)
partners_router = APIRouter(prefix="/api/partners", tags=["crm.partners"], responses=ERROR_RESPONSES)
opportunities_router = APIRouter(prefix="/api/opportunities", tags=["crm.opportunities"], responses=ERROR_RESPONSES)
transactions_router = APIRouter(prefix="/api/transactions", tags=["crm.transactions"], responses=ERROR_RESPONSES)
activities_router = APIRouter(prefix="/api/activities", tags=["crm.activities"], responses=ERROR_RESPONSES)

client_service = ClientService()
partner_service = PartnerService()
opportunity_service = OpportunityService()
transaction_service = TransactionService()
activity_service = ActivityService()


def error_response(status_code: int, message: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content={"message": message})
    correlation_id = get_correlation_id()
    if correlation_id:
        response.headers[CORRELATION_HEADER] = correlation_id
    return response


def handle_crm_error(_: Request, exc: CRMError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"Campo inválido: {location}" if location else "Requisição inválida."
    else:
        message = "Requisição inválida."
    logger.info("request.invalid", extra={"error": str(errors)[:500]})
    return error_response(status.HTTP_400_BAD_REQUEST, message)


def get_actor_user(request: Request, auth_user: AuthUser | None = Depends(get_optional_user)) -> ActorUser:
    if auth_user is None and get_settings().auth_required:
        raise UnauthorizedError("Não autenticado.")
    return ActorUser(
        user_id=auth_user.username if auth_user is not None else "anonymous",
        correlation_id=get_correlation_id() or getattr(request.state, "correlation_id", None),
    )


@clients_router.get("", response_model=list[ClientRead])
def list_clients(db: Session = Depends(get_db), user: ActorUser = Depends(get_actor_user)) -> list[ClientRead]:
    return client_service.list(db)


@clients_router.get("/{client_id}", response_model=ClientRead)
def get_client(
    client_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> ClientRead:
    return client_service.get(db, client_id)


@clients_router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    dto: ClientCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> ClientRead:
    return client_service.create(db, user, dto)


@clients_router.put("/{client_id}", response_model=ClientRead)
def update_client(
    client_id: str,
    dto: ClientUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> ClientRead:
    return client_service.update(db, user, client_id, dto)


@clients_router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_client(
    client_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> Response:
    client_service.delete(db, user, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@partners_router.get("", response_model=list[PartnerRead])
def list_partners(db: Session = Depends(get_db), user: ActorUser = Depends(get_actor_user)) -> list[PartnerRead]:
    return partner_service.list(db)


@partners_router.get("/{partner_id}", response_model=PartnerRead)
def get_partner(
    partner_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> PartnerRead:
    return partner_service.get(db, partner_id)


@partners_router.post("", response_model=PartnerRead, status_code=status.HTTP_201_CREATED)
def create_partner(
    dto: PartnerCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> PartnerRead:
    return partner_service.create(db, user, dto)


@partners_router.put("/{partner_id}", response_model=PartnerRead)
def update_partner(
    partner_id: str,
    dto: PartnerUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> PartnerRead:
    return partner_service.update(db, user, partner_id, dto)


@partners_router.delete("/{partner_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_partner(
    partner_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> Response:
    partner_service.delete(db, user, partner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@opportunities_router.get("", response_model=list[OpportunityRead])
def list_opportunities(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> list[OpportunityRead]:
    return opportunity_service.list(db)


@opportunities_router.get("/{opportunity_id}", response_model=OpportunityRead)
def get_opportunity(
    opportunity_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> OpportunityRead:
    return opportunity_service.get(db, opportunity_id)


@opportunities_router.post("", response_model=OpportunityRead, status_code=status.HTTP_201_CREATED)
def create_opportunity(
    dto: OpportunityCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> OpportunityRead:
    return opportunity_service.create(db, user, dto)


@opportunities_router.put("/{opportunity_id}", response_model=OpportunityRead)
def update_opportunity(
    opportunity_id: str,
    dto: OpportunityUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> OpportunityRead:
    return opportunity_service.update(db, user, opportunity_id, dto)


@opportunities_router.delete("/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_opportunity(
    opportunity_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> Response:
    opportunity_service.delete(db, user, opportunity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@transactions_router.get("", response_model=list[TransactionRead])
def list_transactions(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> list[TransactionRead]:
    return transaction_service.list(db)


@transactions_router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> TransactionRead:
    return transaction_service.get(db, transaction_id)


@transactions_router.post("", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def create_transaction(
    dto: TransactionCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> TransactionRead:
    return transaction_service.create(db, user, dto)


@transactions_router.put("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: str,
    dto: TransactionUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> TransactionRead:
    return transaction_service.update(db, user, transaction_id, dto)


@transactions_router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> Response:
    transaction_service.delete(db, user, transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@activities_router.get("", response_model=list[ActivityRead])
def list_activities(
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> list[ActivityRead]:
    return activity_service.list(db)


@activities_router.get("/{activity_id}", response_model=ActivityRead)
def get_activity(
    activity_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> ActivityRead:
    return activity_service.get(db, activity_id)


@activities_router.post("", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
def create_activity(
    dto: ActivityCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> ActivityRead:
    return activity_service.create(db, user, dto)


@activities_router.put("/{activity_id}", response_model=ActivityRead)
def update_activity(
    activity_id: str,
    dto: ActivityUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> ActivityRead:
    return activity_service.update(db, user, activity_id, dto)


@activities_router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_activity(
    activity_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_actor_user),
) -> Response:
    activity_service.delete(db, user, activity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
