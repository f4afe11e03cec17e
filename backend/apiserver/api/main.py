"""
FastAPI application initialization.

This module builds and configures the FastAPI application instance:
middleware, error handlers and the routers discovered in the routes
directory. Route discovery completes before the application is returned,
so the route table is fixed before the server starts listening.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from apiserver.api.errors import register_exception_handlers
from apiserver.api.middleware import (
    BodySizeLimitMiddleware,
    CorrelationIDMiddleware,
    OriginPolicy,
    OriginPolicyMiddleware,
    UnhandledExceptionMiddleware,
)
from apiserver.api.route_loader import RouteTable, load_routes
from apiserver.api.schemas import ErrorResponse
from apiserver.core.config import Settings, settings as default_settings
from apiserver.core.database import close_database, connect_database
from apiserver.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Connects the data store when the bootstrap has not already done so
    (e.g. when served with ``uvicorn main:app``) and closes it on shutdown.
    """
    route_table: RouteTable = app.state.route_table
    logger.info(
        "application_startup",
        routes_loaded=len(route_table.routes),
        routes_failed=len(route_table.failures),
    )

    if getattr(app.state, "database", None) is None:
        app.state.database = await connect_database(app.state.settings)

    yield

    logger.info("application_shutdown", message="Shutting down application...")
    await close_database()
    app.state.database = None


def create_app(
    settings: Optional[Settings] = None,
    route_table: Optional[RouteTable] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings (default: module settings)
        route_table: Pre-built route table; discovered from settings.routes_dir when omitted

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=settings.api_description,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = None

    # Middleware added last runs first:
    # CorrelationID -> OriginPolicy -> CORS -> BodySizeLimit -> UnhandledException -> routes
    app.add_middleware(UnhandledExceptionMiddleware, settings=settings)
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(OriginPolicyMiddleware, policy=OriginPolicy(settings.allowed_origins))
    app.add_middleware(CorrelationIDMiddleware)

    # Handlers apply to every route regardless of registration order;
    # the Exception handler only sees errors raised by the outer middleware
    register_exception_handlers(app, settings)

    if route_table is None:
        route_table = load_routes(settings.routes_dir, settings.route_prefix)
    app.state.route_table = route_table
    app.include_router(
        route_table.build_router(),
        responses={500: {"model": ErrorResponse}},
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": settings.api_title,
            "version": settings.api_version,
            "docs": "/docs",
        }

    @app.get("/metrics", tags=["metrics"])
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
