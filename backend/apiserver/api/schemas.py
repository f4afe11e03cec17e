"""
API request/response schemas.

Pydantic models for the built-in endpoints and error bodies.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned by every exception handler."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human readable message")
    details: Dict[str, Any] = Field(default_factory=dict)
    stack: Optional[str] = Field(default=None, description="Traceback outside production")


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str
    version: str
    environment: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str
    timestamp: str
    database: str


class LoadedRouteInfo(BaseModel):
    module: str
    paths: List[str]


class RouteFailureInfo(BaseModel):
    module: str
    path: str
    error_type: str
    message: str


class RouteReportResponse(BaseModel):
    """Startup report of route module discovery."""

    prefix: str
    directory: str
    loaded: List[LoadedRouteInfo]
    failed: List[RouteFailureInfo]
