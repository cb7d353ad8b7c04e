from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

_REQ_COUNT = Counter(
    "dnssync_http_requests_total",
    "Total HTTP requests",
    labelnames=("method", "path", "status"),
)
_REQ_LATENCY = Histogram(
    "dnssync_http_request_duration_seconds",
    "HTTP request latency seconds",
    labelnames=("method", "path"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.3, 0.5, 1.0, 2.5, 5.0, 10.0),
)
_RUNTIME_LOOPS = Counter(
    "dnssync_runtime_loops_total",
    "Runtime loop ticks",
    labelnames=("loop", "result"),
)
_SOURCE_ENDPOINTS = Counter(
    "dnssync_source_endpoints_total",
    "Endpoints produced by sources",
    labelnames=("source",),
)
_SOURCE_SKIPPED = Counter(
    "dnssync_source_skipped_nodes_total",
    "Nodes excluded by source policy",
    labelnames=("reason",),
)
_SUPPRESSED_TARGETS = Counter(
    "dnssync_suppressed_targets_total",
    "Targets dropped by the IPv4-only decorator",
)
_CHANGE_NOTIFICATIONS = Counter(
    "dnssync_change_notifications_total",
    "Node cache change notifications delivered",
)


def observe_http_request(*, method: str, path: str, status: int, duration_seconds: float) -> None:
    _REQ_COUNT.labels(method=method, path=path, status=str(status)).inc()
    _REQ_LATENCY.labels(method=method, path=path).observe(duration_seconds)


def record_runtime_loop(*, loop: str, ok: bool) -> None:
    _RUNTIME_LOOPS.labels(loop=loop, result="ok" if ok else "error").inc()


def record_source_endpoints(*, source: str, count: int) -> None:
    if count > 0:
        _SOURCE_ENDPOINTS.labels(source=source).inc(count)


def record_skipped_node(*, reason: str) -> None:
    _SOURCE_SKIPPED.labels(reason=reason).inc()


def record_suppressed_targets(count: int) -> None:
    if count > 0:
        _SUPPRESSED_TARGETS.inc(count)


def record_change_notification() -> None:
    _CHANGE_NOTIFICATIONS.inc()


def render_metrics() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
