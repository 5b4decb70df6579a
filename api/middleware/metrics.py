"""
Prometheus metrics middleware for the RadioCare API.

Exposes /metrics endpoint with request counters, latency histograms,
and chat-turn metrics.
"""

import logging
import time
from typing import Optional

from fastapi import Request, Response
from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, CONTENT_TYPE_LATEST,
)
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    "radiocare_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "radiocare_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
ACTIVE_REQUESTS = Gauge(
    "radiocare_http_active_requests",
    "Currently active HTTP requests",
)

# Chat metrics
CONTEXT_SELECTIONS = Counter(
    "radiocare_context_selections_total",
    "Context selections",
    ["context", "source"],
)
SEVERITY_COUNT = Counter(
    "radiocare_reply_severity_total",
    "Reply severity classifications",
    ["severity"],
)
FOLLOW_UP_EVENTS = Counter(
    "radiocare_follow_up_events_total",
    "Coverage follow-up events",
    ["event"],
)
TURN_ERRORS = Counter(
    "radiocare_turn_errors_total",
    "Chat turns answered with the fallback reply",
    ["error"],
)
TURN_LATENCY = Histogram(
    "radiocare_turn_duration_seconds",
    "Chat turn latency",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0],
)


def record_context_selection(context: str, source: str):
    """Record which context answered a turn and how it was chosen."""
    CONTEXT_SELECTIONS.labels(context=context, source=source).inc()


def record_severity(severity: str):
    SEVERITY_COUNT.labels(severity=severity).inc()


def record_follow_up(event: str):
    """Record a follow-up event (started | answered)."""
    FOLLOW_UP_EVENTS.labels(event=event).inc()


def record_turn_error(error: str):
    TURN_ERRORS.labels(error=error).inc()


def record_turn_latency(seconds: float):
    TURN_LATENCY.observe(seconds)


def record_turn(result) -> None:
    """Record all metrics of a finished chat turn."""
    record_turn_latency(result.processing_time_ms / 1000)
    if result.error:
        record_turn_error(result.error)
    elif result.follow_up_handled:
        record_follow_up("answered")
    else:
        record_context_selection(result.context_key, result.context_source or "unknown")
        record_severity(result.severity)
    if result.follow_up_started:
        record_follow_up("started")


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        ACTIVE_REQUESTS.inc()
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            ACTIVE_REQUESTS.dec()
            raise

        duration = time.time() - start
        route = request.scope.get("route")
        endpoint: Optional[str] = getattr(route, "path", None) or request.url.path

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        ACTIVE_REQUESTS.dec()

        return response


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
