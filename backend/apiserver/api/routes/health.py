"""
Health check endpoints.

GET /api/v1/health - Health check for the API
GET /api/v1/health/live - Liveness probe
GET /api/v1/health/ready - Readiness probe (pings the data store)
GET /api/v1/health/routes - Route module startup report
"""
from datetime import datetime, timezone
from typing import Optional

from elasticsearch import AsyncElasticsearch
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from apiserver.api.dependencies import get_database, get_route_table, get_settings
from apiserver.api.route_loader import RouteTable
from apiserver.api.schemas import HealthResponse, ReadinessResponse, RouteReportResponse
from apiserver.core.config import Settings
from apiserver.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Returns the current status of the API."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        service=settings.api_title,
        version=settings.api_version,
        environment=settings.node_env,
    )


@router.get("/live")
async def liveness_check():
    return {"status": "alive", "timestamp": _now()}


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    database: Optional[AsyncElasticsearch] = Depends(get_database),
):
    """
    Readiness check endpoint.

    Ready only while the data store answers a ping.
    """
    if database is None:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "timestamp": _now(), "database": "disconnected"},
        )

    try:
        available = await database.ping()
    except Exception as e:
        logger.warning("readiness_ping_failed", error_type=type(e).__name__, error_message=str(e))
        available = False

    if not available:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "timestamp": _now(), "database": "unreachable"},
        )
    return ReadinessResponse(status="ready", timestamp=_now(), database="connected")


@router.get("/routes", response_model=RouteReportResponse)
async def route_report(route_table: RouteTable = Depends(get_route_table)):
    """Route modules mounted at startup and the ones that failed to load."""
    return route_table.report()
