"""
Exception types and global exception handlers for the library API.
"""
import traceback
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
import structlog

logger = structlog.get_logger("exceptions")


class APIException(Exception):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "Internal server error",
        headers: dict = None
    ):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.headers = headers or {}


class PayloadTooLargeException(APIException):
    def __init__(self, detail: str = "File too large", max_size_mb: int = None):
        if max_size_mb:
            detail = f"{detail}. Maximum size is {max_size_mb}MB"
        super().__init__(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail)


class RateLimitException(APIException):
    def __init__(self, detail: str = "Rate limit exceeded", retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": str(retry_after)}
        )


def _error_body(error_type: str, message, status_code: int, details=None) -> dict:
    error = {"type": error_type, "message": message, "status_code": status_code}
    if details is not None:
        error["details"] = details
    return {"error": error}


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle custom API exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "API exception occurred",
        exception_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        client_host=request.client.host if request.client else None
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(type(exc).__name__, exc.detail, exc.status_code),
        headers=exc.headers
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        client_host=request.client.host if request.client else None
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTPException", exc.detail, exc.status_code),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        "Validation error occurred",
        errors=errors,
        path=request.url.path,
        method=request.method,
        client_host=request.client.host if request.client else None
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            "ValidationError",
            "Request validation failed",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors,
        )
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy database exceptions."""
    logger.error(
        "Database error occurred",
        exception_type=type(exc).__name__,
        error_detail=str(exc),
        path=request.url.path,
        method=request.method,
        client_host=request.client.host if request.client else None
    )

    if isinstance(exc, IntegrityError):
        detail = "Database constraint violation"
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        detail = "Database operation failed"
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return JSONResponse(
        status_code=status_code,
        content=_error_body("DatabaseError", detail, status_code)
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other uncaught exceptions."""
    logger.error(
        "Unhandled exception occurred",
        exception_type=type(exc).__name__,
        error_detail=str(exc),
        traceback=traceback.format_exc(),
        path=request.url.path,
        method=request.method,
        client_host=request.client.host if request.client else None
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "InternalServerError",
            "An unexpected error occurred",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    )


def setup_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
