"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "docvec_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "docvec_search_latency_seconds",
    "Latency of similarity searches",
    labelnames=("backend",),
    registry=REGISTRY,
)

INDEX_BUILDS = Counter(
    "docvec_index_builds_total",
    "Index handles installed, by backend and operation",
    labelnames=("backend", "operation"),
    registry=REGISTRY,
)

BACKEND_FAILURES = Counter(
    "docvec_index_backend_failures_total",
    "ANN backend construction failures",
    labelnames=("backend",),
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "docvec_index_vectors",
    "Number of vectors in the active index handle",
    registry=REGISTRY,
)

INDEX_DEGRADED = Gauge(
    "docvec_index_degraded",
    "1 when queries are served by exhaustive linear scan",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "SEARCH_LATENCY",
    "INDEX_BUILDS",
    "BACKEND_FAILURES",
    "INDEX_SIZE",
    "INDEX_DEGRADED",
    "metrics_response",
]
