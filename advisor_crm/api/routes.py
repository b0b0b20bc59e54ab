from fastapi import APIRouter, Response

from advisor_crm.core.config import get_settings
from advisor_crm.core.errors import NotFoundError
from advisor_crm.crm.api import (
    activities_router,
    clients_router,
    opportunities_router,
    partners_router,
    transactions_router,
)
from advisor_crm.crm.auth_api import router as auth_router
from advisor_crm.crm.reports import router as reports_router
from advisor_crm.metrics import metrics_response

router = APIRouter()
router.include_router(auth_router)
router.include_router(clients_router)
router.include_router(opportunities_router)
router.include_router(partners_router)
router.include_router(transactions_router)
router.include_router(activities_router)
router.include_router(reports_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics() -> Response:
    if not get_settings().metrics_enabled:
        raise NotFoundError("not found")
    return metrics_response()
