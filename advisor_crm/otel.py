from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Span

from advisor_crm.context import CORRELATION_HEADER, get_correlation_id
from advisor_crm.core.config import get_settings

SERVICE_NAME = "advisor-crm-api"

_provider: TracerProvider | None = None
_exporters_attached = False


def _tracer_provider(service_name: str) -> TracerProvider:
    global _provider

    if _provider is None:
        settings = get_settings()
        _provider = TracerProvider(
            resource=Resource.create(
                {
                    "service.name": service_name,
                    "service.version": settings.app_version,
                    "deployment.environment": settings.app_env,
                }
            )
        )
        trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str = SERVICE_NAME) -> TracerProvider:
    """Install the tracer provider and attach the exporters named in settings, once."""
    global _exporters_attached

    provider = _tracer_provider(service_name)
    if _exporters_attached:
        return provider

    settings = get_settings()
    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _exporters_attached = True
    return provider


def setup_inmemory_otel(service_name: str = SERVICE_NAME) -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _tracer_provider(service_name).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@contextmanager
def crm_span(name: str, **attributes: Any) -> Iterator[Span]:
    """Open a span on the CRM tracer, tagged with the request's correlation id."""
    tracer = trace.get_tracer("app.crm")
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("correlation_id", get_correlation_id() or "")
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, str(value))
        yield span


def get_fastapi_server_request_hook():
    header = CORRELATION_HEADER.encode("latin-1")

    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        correlation_raw = dict(scope.get("headers", [])).get(header)
        if correlation_raw:
            span.set_attribute("correlation_id", correlation_raw.decode("utf-8"))

    return server_request_hook
