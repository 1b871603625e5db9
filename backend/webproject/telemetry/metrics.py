from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import (  # type: ignore[reportMissingImports]
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# In-process API metrics
api_requests_total = Counter(
    "api_requests_total", "Total API requests", ["method", "endpoint", "status"]
)
api_request_duration_seconds = Histogram(
    "api_request_duration_seconds", "API request duration seconds", ["endpoint"]
)

# Consistency checks
consistency_checks_total = Counter(
    "consistency_checks_total", "Consistency checks by invocation source and result", ["source", "result"]
)
consistency_inconsistencies = Gauge(
    "consistency_inconsistencies", "Inconsistencies found by the last check", ["kind"]
)

# Uploads / notifications
uploads_total = Counter("uploads_total", "Image uploads by result", ["result"])
notifications_forwarded_total = Counter(
    "notifications_forwarded_total", "Queue messages relayed to the topic by status", ["status"]
)

router = APIRouter()


@router.get("/metrics")
def metrics() -> PlainTextResponse:
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
