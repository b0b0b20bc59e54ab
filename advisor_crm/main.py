from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from advisor_crm import events
from advisor_crm.api.routes import router as api_router
from advisor_crm.context import CORRELATION_HEADER
from advisor_crm.core.config import get_settings
from advisor_crm.core.database import Base, engine
from advisor_crm.core.errors import CRMError
from advisor_crm.core.events import InternalEvent, event_bus
from advisor_crm.crm import models  # noqa: F401
from advisor_crm.crm.api import handle_crm_error, handle_request_validation_error
from advisor_crm.logging import configure_logging
from advisor_crm.middleware.correlation_id import CorrelationIdMiddleware
from advisor_crm.middleware.request_logging import RequestLoggingMiddleware
from advisor_crm.otel import SERVICE_NAME, get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("app.lifecycle")


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def _on_stage_changed(event: InternalEvent) -> None:
    change = event.payload.get("payload", {})
    logger.info(
        "crm.opportunity.stage_changed",
        extra={
            "event_name": event.name,
            "entity_id": change.get("opportunity_id"),
            "stage": change.get("to_stage"),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
    unsubscribers = [
        event_bus.subscribe(events.SYSTEM_STARTED, _on_system_started),
        event_bus.subscribe(events.OPPORTUNITY_STAGE_CHANGED, _on_stage_changed),
    ]
    event_bus.publish(events.SYSTEM_STARTED, {"service": SERVICE_NAME, "environment": settings.app_env})
    try:
        yield
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER],
)
app.add_exception_handler(CRMError, handle_crm_error)
app.add_exception_handler(RequestValidationError, handle_request_validation_error)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel()

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
