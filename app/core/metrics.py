from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.core.config import settings


class _NoOpMetric:
    def labels(self, *args: Any, **kwargs: Any) -> "_NoOpMetric":
        return self

    def observe(self, *_: Any, **__: Any) -> None:
        return None

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _metric_or_noop(factory, *args: Any, **kwargs: Any) -> Any:
    if not settings.METRICS_ENABLED:
        return _NoOpMetric()
    return factory(*args, **kwargs)


REQUEST_LATENCY = _metric_or_noop(
    Histogram,
    f"{settings.METRICS_NAMESPACE}_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path", "status_code"],
    buckets=settings.METRICS_LATENCY_BUCKETS,
)

REQUEST_COUNT = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_http_requests_total",
    "Total HTTP requests processed.",
    ["method", "path", "status_code"],
)

REQUEST_ERRORS = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_http_errors_total",
    "Total HTTP requests resulting in 4xx/5xx.",
    ["method", "path", "status_code"],
)

LOGIN_ATTEMPTS = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_auth_login_attempts_total",
    "Authentication attempts partitioned by outcome.",
    ["outcome"],
)

PROMOTION_RESOLUTIONS = _metric_or_noop(
    Counter,
    f"{settings.METRICS_NAMESPACE}_promotion_resolutions_total",
    "Promotion resolutions partitioned by whether any discount applied.",
    ["outcome"],
)


def normalize_path(request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path
    return request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    labels = (request.method, normalize_path(request), str(status_code))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_LATENCY.labels(*labels).observe(elapsed)
    if status_code >= 400:
        REQUEST_ERRORS.labels(*labels).inc()


def record_login_attempt(outcome: str) -> None:
    LOGIN_ATTEMPTS.labels(outcome=outcome).inc()


def record_promotion_resolution(applied: bool) -> None:
    PROMOTION_RESOLUTIONS.labels(outcome="applied" if applied else "none").inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
