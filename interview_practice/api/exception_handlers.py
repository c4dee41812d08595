"""
Global exception handlers for FastAPI.

Every failure leaves the API as the same envelope:

    {"success": false, "error": {"code": ..., "type": ..., "message": ...}}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import structlog

from interview_practice.core.config import settings
from interview_practice.core.exceptions import (
    ConfigurationError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PracticeEngineError,
)

log = structlog.get_logger(__name__)


def error_response(status_code: int, code: str, error_type: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "type": error_type, "message": message},
        },
    )


def status_for(exc: PracticeEngineError) -> int:
    """HTTP status for an application error."""
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ForbiddenError):
        if settings.conceal_session_ownership:
            return status.HTTP_404_NOT_FOUND
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, InvalidStateError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, InvalidArgumentError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Sets up handlers for all PracticeEngineError subclasses, request
    validation errors, HTTP exceptions and anything left unhandled.
    """

    @app.exception_handler(PracticeEngineError)
    async def practice_engine_error_handler(
        request: Request,
        exc: PracticeEngineError,
    ) -> JSONResponse:
        """Map application errors to status codes and the error envelope."""
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        status_code = status_for(exc)

        if isinstance(exc, ForbiddenError) and settings.conceal_session_ownership:
            # Indistinguishable from a missing session
            log_ctx.warning("request_error", message=exc.message, status_code=status_code)
            return error_response(
                status_code, NotFoundError.code, "SessionNotFoundError", "Session not found"
            )

        if isinstance(exc, ConfigurationError):
            log_ctx.error("configuration_error", message=exc.message)
            return error_response(
                status_code, exc.code, "ConfigurationError", "Server configuration error"
            )

        if status_code >= 500:
            log_ctx.error("request_error", message=exc.message, status_code=status_code)
        else:
            log_ctx.warning("request_error", message=exc.message, status_code=status_code)

        return error_response(status_code, exc.code, type(exc).__name__, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Malformed bodies, params or headers become invalid_argument / 400."""
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        log.warning("request_validation_failed", path=request.url.path, details=details)
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            InvalidArgumentError.code,
            "InvalidArgumentError",
            details or "Invalid request",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        code = "not_found" if exc.status_code == status.HTTP_404_NOT_FOUND else "http_error"
        return error_response(exc.status_code, code, "HTTPException", str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status."""
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "InternalServerError",
            "An unexpected error occurred",
        )
