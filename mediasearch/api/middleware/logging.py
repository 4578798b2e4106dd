"""
Request logging middleware.

One log line per request on the stdlib ``mediasearch.api`` logger, tagged
with a request id that is echoed back in ``X-Request-ID``. Outside
development the line is rendered as JSON.

Credentials never reach the log: the Authorization header is not logged
and password/token fields of JSON bodies are masked.
"""

import json
import logging
import re
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID (accessible throughout request lifecycle)
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("mediasearch.api")

REQUEST_ID_HEADER = "X-Request-ID"

# Client-supplied request ids are only trusted in this shape
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Compared after dropping "_"/"-" and lower-casing: newPassword == new_password
SENSITIVE_FIELDS: FrozenSet[str] = frozenset({
    "password",
    "currentpassword",
    "newpassword",
    "token",
    "accesstoken",
    "secret",
})


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True

    # Log JSON request bodies (redacted)
    log_request_body: bool = False
    max_body_log_size: int = 10_000

    excluded_paths: FrozenSet[str] = field(default_factory=lambda: frozenset({
        "/api/health",
        "/favicon.ico",
    }))

    redacted_fields: FrozenSet[str] = SENSITIVE_FIELDS

    # Seconds
    slow_request_threshold: float = 2.0


def _field_key(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


def redact_sensitive_data(
    data: Any,
    redacted_fields: FrozenSet[str] = SENSITIVE_FIELDS,
    replacement: str = "[REDACTED]",
) -> Any:
    """Recursively mask values whose key names a credential."""
    if isinstance(data, dict):
        return {
            key: replacement
            if _field_key(str(key)) in redacted_fields
            else redact_sensitive_data(value, redacted_fields, replacement)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, redacted_fields, replacement) for item in data]
    return data


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_var.get()


def _choose_request_id(incoming: Optional[str]) -> str:
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return uuid.uuid4().hex[:12]


class StructuredLogFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    REQUEST_FIELDS = (
        "method",
        "path",
        "query",
        "client_ip",
        "authenticated",
        "body",
        "status_code",
        "duration_ms",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        if request_id:
            entry["request_id"] = request_id

        for name in self.REQUEST_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and logs its outcome."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def _body_for_log(self, request: Request) -> Any:
        body = await request.body()
        if not body:
            return None
        if len(body) > self.config.max_body_log_size:
            return f"[{len(body)} bytes]"
        try:
            parsed = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            # Never echo a body that could not be redacted
            return f"[unparsed body: {len(body)} bytes]"
        return redact_sensitive_data(parsed, self.config.redacted_fields)

    async def _log_request(self, request: Request, call_next: Callable, request_id: str) -> Response:
        started = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "client_ip": request.client.host if request.client else None,
            "authenticated": "authorization" in request.headers,
        }

        if self.config.log_request_body and request.method in ("POST", "PUT", "PATCH"):
            body = await self._body_for_log(request)
            if body is not None:
                fields["body"] = body

        response = await call_next(request)

        duration = time.perf_counter() - started
        fields["status_code"] = response.status_code
        fields["duration_ms"] = round(duration * 1000, 2)
        slow = duration > self.config.slow_request_threshold

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400 or slow:
            level = logging.WARNING
        else:
            level = logging.INFO

        message = f"{request.method} {request.url.path} -> {response.status_code} ({fields['duration_ms']}ms)"
        if slow:
            message = f"[SLOW] {message}"

        logger.log(level, message, extra={**fields, "request_id": request_id})
        return response

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _choose_request_id(request.headers.get(REQUEST_ID_HEADER))
        context_token = request_id_var.set(request_id)
        request.state.request_id = request_id

        try:
            if self.config.enabled and request.url.path not in self.config.excluded_paths:
                response = await self._log_request(request, call_next, request_id)
            else:
                response = await call_next(request)
        finally:
            request_id_var.reset(context_token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Configure logging middleware and formatters.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Emit JSON lines for the ``mediasearch`` loggers.
    """
    if config is None:
        config = LoggingConfig()

    if structured:
        package_logger = logging.getLogger("mediasearch")
        if not any(isinstance(h.formatter, StructuredLogFormatter) for h in package_logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredLogFormatter())
            package_logger.addHandler(handler)
            package_logger.propagate = False
        package_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config)
