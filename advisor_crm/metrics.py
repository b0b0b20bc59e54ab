from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

crm_mutations_total = Counter(
    "crm_mutations_total",
    "CRM record mutations by resource and action",
    ["resource", "action"],
)

crm_opportunity_stage_changes_total = Counter(
    "crm_opportunity_stage_changes_total",
    "Opportunity stage transitions by destination stage",
    ["to_stage"],
)

auth_logins_total = Counter(
    "auth_logins_total",
    "Login attempts by outcome",
    ["outcome"],
)


# Record ids are uuids; anything else in a raw path is kept as-is.
_UUID_SEGMENT_RE = re.compile(r"/[0-9a-fA-F]{8}-(?:[0-9a-fA-F]{4}-){3}[0-9a-fA-F]{12}(?=/|$)")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def resolve_http_path_label(request: Request) -> str:
    """Label requests by route template so each record id does not get its own series."""
    route = request.scope.get("route")
    path_format = getattr(route, "path_format", None)
    if isinstance(path_format, str) and path_format:
        return _PATH_PARAM_RE.sub("{id}", path_format)
    return _UUID_SEGMENT_RE.sub("/{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_crm_mutation(resource: str, action: str) -> None:
    crm_mutations_total.labels(resource=resource, action=action).inc()


def observe_stage_change(to_stage: str) -> None:
    crm_opportunity_stage_changes_total.labels(to_stage=to_stage).inc()


def observe_login(outcome: str) -> None:
    auth_logins_total.labels(outcome=outcome).inc()


def metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
