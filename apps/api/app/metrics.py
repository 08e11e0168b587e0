from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


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

modification_transitions_total = Counter(
    "modification_transitions_total",
    "Total engagement modification request transitions by resulting status",
    ["request_type", "status"],
)

concurrency_conflicts_total = Counter(
    "concurrency_conflicts_total",
    "Total writes rejected because another writer changed the record first",
)

commission_approvals_total = Counter(
    "commission_approvals_total",
    "Total commission approval ledger changes",
    ["kind", "action"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")
_PUBLIC_TOKEN_RE = re.compile(r"^(/public/modifications/)[^/]+")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_tokens = _PUBLIC_TOKEN_RE.sub(r"\1{id}", path)
    without_uuids = _UUID_RE.sub("{id}", without_tokens)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_modification_transition(request_type: str, status: str) -> None:
    modification_transitions_total.labels(request_type=request_type, status=status).inc()


def observe_concurrency_conflict() -> None:
    concurrency_conflicts_total.inc()


def observe_commission_approval(kind: str, action: str) -> None:
    commission_approvals_total.labels(kind=kind, action=action).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
