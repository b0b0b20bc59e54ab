from __future__ import annotations

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from advisor_crm.context import CORRELATION_HEADER, correlation_scope, normalize_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds one correlation id per request and echoes it on every response.

    Error responses built by the exception handlers carry the header too, since
    they run inside the scope opened here.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = normalize_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        with correlation_scope(correlation_id):
            response = await call_next(request)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
