"""
Error Handling Middleware for MediaSearch

Centralized error handling:
- Structured error responses
- Logging of errors
- Exception translation
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging import REQUEST_ID_HEADER, get_request_id


class MediaSearchException(Exception):
    """Base exception for MediaSearch errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: str = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        self.headers = headers
        super().__init__(message)


class ValidationError(MediaSearchException):
    """Input validation failed."""

    def __init__(self, message: str, detail: str = None, errors: list[dict] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            detail=detail,
        )
        self.errors = errors or []


class AuthError(MediaSearchException):
    """Missing, invalid or expired credentials."""

    def __init__(self, message: str = "Not authenticated", detail: str = None):
        super().__init__(
            message=message,
            code="AUTH_ERROR",
            status_code=401,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(MediaSearchException):
    """Authenticated but not allowed."""

    def __init__(self, message: str = "Forbidden", detail: str = None):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
            detail=detail,
        )


class NotFoundError(MediaSearchException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=(
                f"No {resource} with identifier '{identifier}' exists"
                if identifier is not None else None
            ),
        )


class ConflictError(MediaSearchException):
    """Resource already exists."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            detail=detail,
        )


class RateLimitError(MediaSearchException):
    """Rate limit exceeded."""

    def __init__(self, limit: int, window: str):
        super().__init__(
            message="Rate limit exceeded",
            code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            detail=f"Maximum {limit} requests per {window}",
        )


class UpstreamError(MediaSearchException):
    """The Openverse API failed or returned something unusable."""

    def __init__(self, service: str = "Openverse", detail: str = None):
        super().__init__(
            message="Failed to fetch media. Please try again later.",
            code="UPSTREAM_ERROR",
            status_code=502,
            detail=None,
        )
        # Kept for logs only, never sent to the client
        self.service = service
        self.upstream_detail = detail


def create_error_response(
    message: str,
    code: str,
    status_code: int,
    detail: str = None,
    headers: Optional[dict[str, str]] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> JSONResponse:
    """
    Create standardized error response.

    The request id falls back to the one bound by the logging middleware.
    """
    request_id = request_id or get_request_id()
    if request_id:
        headers = {**(headers or {}), REQUEST_ID_HEADER: request_id}
    content = {
        "message": message,
        "code": code,
        "detail": detail,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _field_errors(exc: RequestValidationError) -> list[dict]:
    """Flatten pydantic errors into ``{field, message}`` pairs."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(location) or None,
            "message": error.get("msg", "Invalid value"),
        })
    return errors


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(MediaSearchException)
    async def mediasearch_exception_handler(request: Request, exc: MediaSearchException):
        if isinstance(exc, UpstreamError):
            logger.error(
                f"{exc.service} failure on {request.url.path}: {exc.upstream_detail}"
            )
        else:
            logger.warning(f"MediaSearch error: {exc.code} - {exc.message}")

        extra = {}
        if isinstance(exc, ValidationError):
            extra["errors"] = exc.errors

        return create_error_response(
            message=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.detail,
            headers=exc.headers,
            request_id=_request_id(request),
            **extra,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning(f"Validation error on {request.url.path}: {errors}")
        return create_error_response(
            message="Validation failed",
            code="VALIDATION_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            request_id=_request_id(request),
            errors=errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and request.url.path.startswith("/api"):
            message = "API endpoint not found"
        else:
            message = str(exc.detail)
        return create_error_response(
            message=message,
            code="HTTP_ERROR",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            request_id=_request_id(request),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        return create_error_response(
            message="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=500,
            detail="An unexpected error occurred",
            request_id=_request_id(request),
        )
