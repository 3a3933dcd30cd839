"""
Prometheus Metrics
==================

Application metrics for monitoring and alerting.
"""

import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.routing import Match

UNMATCHED_ENDPOINT = "<unmatched>"

# Custom registry so tests and multiple app instances do not collide with the default one
REGISTRY = CollectorRegistry()

APP_INFO = Info(
    "chatbi",
    "ChatBI application information",
    registry=REGISTRY,
)

# Chat turn metrics
TURNS_TOTAL = Counter(
    "chatbi_turns_total",
    "Total number of chat turns processed",
    ["outcome"],  # executable, not_executable, error
    registry=REGISTRY,
)

TURN_DURATION = Histogram(
    "chatbi_turn_duration_seconds",
    "Chat turn processing duration in seconds (enrich + convert + generate)",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

ACTIVE_TURNS = Gauge(
    "chatbi_active_turns",
    "Number of chat turns currently being processed",
    registry=REGISTRY,
)

# SQL execution metrics
SQL_EXECUTIONS_TOTAL = Counter(
    "chatbi_sql_executions_total",
    "Total number of SQL executions",
    ["status"],  # success, failure
    registry=REGISTRY,
)

SQL_EXECUTION_DURATION = Histogram(
    "chatbi_sql_execution_duration_seconds",
    "SQL execution duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

# HTTP metrics
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=REGISTRY,
)

CHAT_PATH = "/api/v1/chat"


def setup_metrics(app: FastAPI, version: str = "0.1.0", environment: str = "development") -> None:
    """
    Set up Prometheus metrics for the FastAPI application.

    Args:
        app: FastAPI application instance
        version: Application version reported in the info metric
        environment: Deployment environment reported in the info metric
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next: Callable) -> Response:
        """Middleware to track HTTP metrics."""
        start_time = time.perf_counter()

        is_chat_endpoint = request.url.path == CHAT_PATH
        endpoint = route_template(request)
        if is_chat_endpoint:
            ACTIVE_TURNS.inc()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                endpoint=endpoint,
                status=response.status_code,
            ).inc()

            HTTP_REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration)

            return response
        finally:
            if is_chat_endpoint:
                ACTIVE_TURNS.dec()


def route_template(request: Request) -> str:
    """
    Path template of the route serving a request, e.g.
    ``/api/v1/conversations/{conversation_id}``.

    Label values are bounded by the number of routes. A path matched only
    with another method (405) keeps its template.
    """
    partial = None
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path
        if match == Match.PARTIAL and partial is None:
            partial = route.path
    return partial or UNMATCHED_ENDPOINT


def track_turn_metrics(outcome: str, duration_seconds: float) -> None:
    """
    Track metrics for a completed chat turn.

    Args:
        outcome: "executable", "not_executable" or "error"
        duration_seconds: Total processing time
    """
    TURNS_TOTAL.labels(outcome=outcome).inc()
    TURN_DURATION.observe(duration_seconds)


def track_execution_metrics(success: bool, duration_seconds: float) -> None:
    """
    Track metrics for a completed SQL execution.

    Args:
        success: Whether the statement succeeded
        duration_seconds: Execution time
    """
    SQL_EXECUTIONS_TOTAL.labels(status="success" if success else "failure").inc()
    SQL_EXECUTION_DURATION.observe(duration_seconds)


async def metrics_endpoint(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
