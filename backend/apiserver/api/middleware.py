"""
FastAPI middleware.

- CorrelationIDMiddleware: per-request correlation IDs, request logging and metrics
- OriginPolicyMiddleware: rejects requests from origins outside the allow-list
- BodySizeLimitMiddleware: caps JSON and URL-encoded request bodies
- UnhandledExceptionMiddleware: converts uncaught errors into the 500 error body
"""
import time
from typing import Iterable, Optional

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from apiserver.api.errors import error_response, unhandled_error_response
from apiserver.core.config import Settings
from apiserver.utils.exceptions import (
    BaseAppException,
    CORSRejectedError,
    PayloadTooLargeError,
)
from apiserver.utils.logging import (
    get_logger,
    set_correlation_id,
    generate_correlation_id,
)
from apiserver.utils.metrics import (
    http_requests_total,
    http_requests_rejected_total,
    http_request_duration_seconds,
    http_request_size_bytes,
    http_response_size_bytes,
)

logger = get_logger(__name__)

# Content types whose bodies are parsed and therefore size-limited
PARSED_CONTENT_TYPES = (
    "application/json",
    "application/x-www-form-urlencoded",
)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to requests.

    Generates a unique correlation ID for each request and:
    1. Sets it in the context for logging
    2. Adds it to response headers (X-Correlation-ID)
    3. Logs request/response information
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(correlation_id)

        start_time = time.time()
        request_body_size = 0

        if request.method in ["POST", "PUT", "PATCH"]:
            content_length = request.headers.get("content-length")
            if content_length:
                try:
                    request_body_size = int(content_length)
                except ValueError:
                    request_body_size = 0

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            query_params=str(request.query_params) if request.query_params else None,
            client_host=request.client.host if request.client else None,
            origin=request.headers.get("origin"),
        )

        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            http_requests_total.labels(method=method, endpoint=endpoint, status_code=500).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_request_size_bytes.labels(method=method, endpoint=endpoint).observe(request_body_size)

            logger.error(
                "request_error",
                method=method,
                path=endpoint,
                error_type=type(e).__name__,
                error_message=str(e),
                duration_seconds=round(duration, 3),
            )
            raise

        duration = time.time() - start_time
        http_requests_total.labels(method=method, endpoint=endpoint, status_code=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
        http_request_size_bytes.labels(method=method, endpoint=endpoint).observe(request_body_size)
        http_response_size_bytes.labels(method=method, endpoint=endpoint).observe(
            int(response.headers.get("content-length", 0))
        )

        response.headers["X-Correlation-ID"] = correlation_id

        logger.info(
            "request_completed",
            method=method,
            path=endpoint,
            status_code=response.status_code,
            duration_seconds=round(duration, 3),
        )
        return response


class OriginPolicy:
    """
    Cross-origin allow-list.

    A request without an Origin header is allowed (same-origin requests,
    curl, server-to-server). Otherwise the Origin must match exactly.
    """

    def __init__(self, allowed_origins: Iterable[str]):
        self.allowed_origins = [origin for origin in allowed_origins if origin]

    def is_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        return origin in self.allowed_origins


class OriginPolicyMiddleware(BaseHTTPMiddleware):
    """Rejects requests whose Origin is not allowed, with a 403 CORS error."""

    def __init__(self, app: ASGIApp, policy: OriginPolicy):
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not self.policy.is_allowed(origin):
            http_requests_rejected_total.labels(reason="cors").inc()
            logger.warning(
                "cors_rejected",
                origin=origin,
                method=request.method,
                path=request.url.path,
            )
            return exception_response(CORSRejectedError("Not allowed by CORS", {"origin": origin}))

        if origin:
            logger.debug("cors_origin_allowed", origin=origin)
        return await call_next(request)


class UnhandledExceptionMiddleware:
    """
    Turns exceptions no handler claimed into the 500 error body.

    Installed innermost so the response still passes back through the
    CORS and correlation-id middleware on its way out.
    """

    def __init__(self, app: ASGIApp, settings: Settings):
        self.app = app
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except Exception as e:
            # Headers already went out; nothing left to replace
            if response_started:
                raise
            response = unhandled_error_response(e, scope.get("path", ""), self.settings)
            await response(scope, receive, send)


class BodySizeLimitMiddleware:
    """
    Caps JSON and URL-encoded request bodies at max_body_size bytes.

    A declared Content-Length above the limit is rejected up front;
    bodies without one are counted as they stream and the read fails
    with PayloadTooLargeError once the limit is crossed.
    """

    def __init__(self, app: ASGIApp, max_body_size: int):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        content_type = headers.get("content-type", "").split(";")[0].strip().lower()
        if not _is_parsed_content_type(content_type):
            await self.app(scope, receive, send)
            return

        content_length = headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
            http_requests_rejected_total.labels(reason="payload_too_large").inc()
            logger.warning(
                "payload_too_large",
                path=scope.get("path"),
                content_length=int(content_length),
                limit=self.max_body_size,
            )
            response = exception_response(
                PayloadTooLargeError("Request body is too large", {"limit": self.max_body_size})
            )
            await response(scope, receive, send)
            return

        received = 0
        limit = self.max_body_size

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    http_requests_rejected_total.labels(reason="payload_too_large").inc()
                    raise PayloadTooLargeError(
                        "Request body is too large",
                        {"limit": limit},
                    )
            return message

        await self.app(scope, limited_receive, send)


def _is_parsed_content_type(content_type: str) -> bool:
    if content_type in PARSED_CONTENT_TYPES:
        return True
    # application/vnd.api+json and friends
    return content_type.startswith("application/") and content_type.endswith("+json")


def exception_response(exc: BaseAppException) -> JSONResponse:
    """Error body for an application exception raised outside a route."""
    return error_response(exc.status_code, type(exc).__name__, exc.message, exc.details)
