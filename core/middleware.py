"""
HTTP middleware: security headers, request logging, body size and timeout limits.
"""
import asyncio
import time
import uuid
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
import structlog

logger = structlog.get_logger("middleware")


def _client_host(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    # Raised HTTPExceptions never reach the app's handlers from inside middleware
    return JSONResponse(
        status_code=status_code,
        content={"error": {"type": error_type, "message": message, "status_code": status_code}},
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        # The SPA embeds YouTube players and loads remote cover images
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "frame-src https://www.youtube.com https://www.youtube-nocookie.com; "
            "frame-ancestors 'none';"
        )
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and tag the response with X-Request-ID / X-Process-Time."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        logger.info(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            query_params=str(request.query_params),
            client_host=_client_host(request),
            user_agent=request.headers.get("User-Agent", "unknown")
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                request_id=request_id,
                exception=str(e),
                process_time_ms=round((time.time() - start_time) * 1000, 2)
            )
            raise

        process_time_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            "Request completed",
            request_id=request_id,
            status_code=response.status_code,
            process_time_ms=process_time_ms
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time_ms)
        return response


class RequestSizeMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared Content-Length exceeds the limit."""

    def __init__(self, app, max_size: int = 150 * 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        content_length = request.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                "Request body too large",
                content_length=int(content_length),
                max_size=self.max_size,
                client_host=_client_host(request)
            )
            return _error_response(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                f"Request body too large. Maximum size: {self.max_size} bytes",
                "PayloadTooLargeException",
            )

        return await call_next(request)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests running longer than the configured timeout."""

    def __init__(self, app, timeout_seconds: int = 300):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Request timeout",
                timeout_seconds=self.timeout_seconds,
                path=request.url.path,
                method=request.method
            )
            return _error_response(
                status.HTTP_504_GATEWAY_TIMEOUT,
                f"Request timeout after {self.timeout_seconds} seconds",
                "TimeoutError",
            )


def setup_middleware(app, config: dict = None):
    """Register middleware; the last one added runs first."""
    config = config or {}

    if config.get("enable_timeout", True):
        app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=config.get("timeout_seconds", 300))

    if config.get("enable_size_limit", True):
        app.add_middleware(RequestSizeMiddleware, max_size=config.get("max_request_size", 150 * 1024 * 1024))

    if config.get("enable_request_logging", True):
        app.add_middleware(RequestLoggingMiddleware)

    if config.get("enable_security_headers", True):
        app.add_middleware(SecurityHeadersMiddleware)
