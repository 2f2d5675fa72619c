"""Custom exceptions and centralized exception handlers."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 problem+json style response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "status": self.status_code,
            **({"details": self.details} if self.details else {}),
        }


class NotFoundError(AppException):
    """Resource not found."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class UnauthorizedError(AppException):
    """Missing or mismatched shared secret."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    message = "Unauthorized"


class ValidationError(AppException):
    """Malformed payload, rejected before persistence."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    error_code = "VALIDATION_ERROR"
    message = "Validation failed"


class StoreError(AppException):
    """Persistence failure. Fatal for the enclosing write."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "STORE_ERROR"
    message = "Storage operation failed"


class ParseIncompleteError(AppException):
    """Upstream statement shape was not recognized."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "PARSE_INCOMPLETE"
    message = "Upstream report could not be parsed"


class UpstreamError(AppException):
    """External data provider failure."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "EXTERNAL_SERVICE_ERROR"
    message = "External service temporarily unavailable"


class RateLimitedError(UpstreamError):
    """Upstream kept answering 429 after the retry budget."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "UPSTREAM_RATE_LIMITED"
    message = "Upstream rate limit exceeded"


class UpstreamTimeoutError(UpstreamError):
    """Upstream call exceeded its time budget and was cancelled."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    error_code = "UPSTREAM_TIMEOUT"
    message = "Upstream request timed out"


class UpstreamUnavailableError(UpstreamError):
    """Upstream answered with a non-2xx status or could not be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "UPSTREAM_UNAVAILABLE"
    message = "Upstream request failed"

    def __init__(self, message: str | None = None, upstream_status: int | None = None, **kwargs):
        self.upstream_status = upstream_status
        details = kwargs.pop("details", None) or {}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__(message, details=details, **kwargs)


def register_exception_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={
                "X-Request-ID": getattr(request.state, "request_id", "unknown"),
                "Cache-Control": "no-store",
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        import logging

        logger = logging.getLogger("signalboard.error")
        logger.exception(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )

        from .config import settings

        if settings.debug:
            message = str(exc)
        else:
            message = "An unexpected error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": message,
                "status": 500,
            },
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )
