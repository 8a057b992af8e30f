"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

SEARCH_COUNT = Counter(
    "psearch_searches_total",
    "Hybrid search calls by fusion strategy and outcome",
    labelnames=("strategy", "status"),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "psearch_search_latency_seconds",
    "End-to-end latency of a single hybrid search",
    labelnames=("strategy",),
    registry=REGISTRY,
)

BRANCH_LATENCY = Histogram(
    "psearch_branch_latency_seconds",
    "Latency of the vector and lexical branches",
    labelnames=("branch",),
    registry=REGISTRY,
)

RERANK_FAILURES = Counter(
    "psearch_rerank_failures_total",
    "Reranker calls that failed and fell back to neutral scores",
    registry=REGISTRY,
)

BATCH_DUPLICATES = Counter(
    "psearch_batch_duplicates_total",
    "Chunks dropped by batch search de-duplication",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "BRANCH_LATENCY",
    "RERANK_FAILURES",
    "BATCH_DUPLICATES",
    "metrics_response",
]
