"""
Exception handlers.

Every error raised by a route handler ends up here and is converted into
a JSON body of the shape:

    {"error": <type>, "message": <text>, "details": {...}}

Unhandled exceptions also carry a ``stack`` outside production.
"""
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apiserver.core.config import Settings
from apiserver.utils.exceptions import BaseAppException
from apiserver.utils.logging import get_logger

logger = get_logger(__name__)


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    stack: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the JSON error body shared by handlers and middleware."""
    content: Dict[str, Any] = {
        "error": error,
        "message": message,
        "details": details or {},
    }
    if stack is not None:
        content["stack"] = stack
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Attach the error handlers to the application."""

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error_message=exc.message,
            status_code=exc.status_code,
        )
        return error_response(
            exc.status_code,
            type(exc).__name__,
            exc.message,
            exc.details,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        message = detail if isinstance(detail, str) else "HTTP error"
        details = {} if isinstance(detail, str) else {"detail": detail}
        return error_response(
            exc.status_code,
            "HTTPException",
            message,
            details,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "RequestValidationError",
            "Request validation failed",
            {"errors": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        return unhandled_error_response(exc, request.url.path, settings)


def unhandled_error_response(exc: Exception, path: str, settings: Settings) -> JSONResponse:
    """Log an unhandled exception and build its 500 body."""
    logger.error(
        "unhandled_exception",
        path=path,
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=exc,
    )
    stack = None
    if not settings.is_production:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        type(exc).__name__,
        str(exc) or "Internal Server Error",
        stack=stack,
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that JSONResponse cannot encode
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return jsonable_encoder(errors)
