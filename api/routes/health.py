"""
Health Check Routes
===================

Kubernetes-compatible health and readiness endpoints.
"""

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api import __version__
from api.dependencies import get_database, get_registry
from api.schemas import HealthResponse, HealthStatus, ReadinessResponse
from chatbi.connections import ConnectionRegistry
from chatbi.database import DatabaseManager
from observability.logging_config import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get("/", summary="Service info")
async def root() -> dict:
    return {"message": "ChatBI API", "version": __version__, "status": "running"}


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "Database unreachable"}},
    summary="Health check",
    description="Checks connectivity of the active database connection",
)
async def health_check(
    registry: ConnectionRegistry = Depends(get_registry),
    database: DatabaseManager = Depends(get_database),
):
    """
    Health check endpoint for load balancers and monitoring.

    Lists the tables of the active connection. Any failure makes the
    service unhealthy (HTTP 503).

    Returns:
        HealthResponse with current service status
    """
    try:
        tables = await asyncio.to_thread(database.list_tables, registry.active())
    except Exception as e:
        logger.warning("health_check_failed", error=str(e))
        body = HealthResponse(
            status=HealthStatus.UNHEALTHY,
            version=__version__,
            database="disconnected",
            error=str(e),
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))

    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        tables_count=len(tables),
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Returns whether the service is ready to handle requests",
)
async def readiness_check(registry: ConnectionRegistry = Depends(get_registry)) -> ReadinessResponse:
    """
    Readiness check for Kubernetes.

    Used to determine if the pod should receive traffic.

    Returns:
        ReadinessResponse indicating readiness status
    """
    checks = {
        "pipeline_loaded": True,
        "connection_configured": bool(registry.list_connections()),
    }

    return ReadinessResponse(
        ready=all(checks.values()),
        checks=checks,
    )


@router.get(
    "/live",
    summary="Liveness check",
    description="Simple liveness probe",
)
async def liveness_check() -> dict:
    """
    Liveness check for Kubernetes.

    Simple endpoint to verify the process is running.

    Returns:
        Simple OK response
    """
    return {"status": "ok"}
