"""
Rate limiting middleware.

Token bucket per client and endpoint group. A client is identified by a
hash of its bearer token when it sends one, otherwise by IP. The credential
endpoints (login, register, password change) get tighter buckets of their
own. State lives in memory, so limits apply per process.
"""

import asyncio
import hashlib
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .error_handler import RateLimitError, create_error_response

logger = logging.getLogger(__name__)

# Seconds a bucket may sit idle before it is dropped
BUCKET_TTL = 3600
SWEEP_INTERVAL = 300


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_minute: int = 60

    # Requests a fresh client may make back to back
    burst_size: int = 20

    enabled: bool = True

    excluded_paths: Tuple[str, ...] = ("/api/health", "/docs", "/openapi.json", "/redoc")

    # Path prefix -> requests per minute
    endpoint_limits: Dict[str, int] = field(default_factory=lambda: {
        "/api/auth/login": 10,
        "/api/auth/register": 5,
        "/api/auth/password": 5,
    })

    trusted_proxy_headers: Tuple[str, ...] = ("X-Forwarded-For", "X-Real-IP")

    def limit_for(self, path: str) -> Tuple[str, int]:
        """Bucket group and requests per minute for ``path``."""
        for prefix, limit in self.endpoint_limits.items():
            if path.startswith(prefix):
                return prefix, limit
        return "default", self.requests_per_minute


@dataclass
class TokenBucket:
    capacity: float
    refill_per_second: float
    tokens: float
    updated_at: float

    def take(self, now: float) -> Tuple[bool, float]:
        """
        Consume one token.

        Returns:
            (allowed, seconds until the next token is available).
        """
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_second)
        self.updated_at = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True, 0.0
        return False, (1 - self.tokens) / self.refill_per_second


class InMemoryRateLimiter:
    """Buckets keyed by client identifier and endpoint group."""

    def __init__(self, config: RateLimitConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    def get_limit_for_endpoint(self, path: str) -> int:
        return self.config.limit_for(path)[1]

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < SWEEP_INTERVAL:
            return
        stale = [key for key, bucket in self._buckets.items() if now - bucket.updated_at > BUCKET_TTL]
        for key in stale:
            del self._buckets[key]
        self._last_sweep = now
        if stale:
            logger.debug(f"Dropped {len(stale)} idle rate limit buckets")

    async def check_rate_limit(self, identifier: str, path: str) -> Tuple[bool, int, float]:
        """
        Consume one request for ``identifier`` on ``path``.

        Returns:
            Tuple of (allowed, remaining_requests, retry_after_seconds).
        """
        group, limit = self.config.limit_for(path)
        key = f"{identifier}:{group}"

        async with self._lock:
            now = self._clock()
            self._sweep(now)

            bucket = self._buckets.get(key)
            if bucket is None:
                capacity = float(min(self.config.burst_size, limit))
                bucket = TokenBucket(capacity, limit / 60.0, capacity, now)
                self._buckets[key] = bucket

            allowed, retry_after = bucket.take(now)
            return allowed, int(bucket.tokens), retry_after


def client_identifier(
    request: Request,
    trusted_proxy_headers: Tuple[str, ...] = (),
    by_token: bool = True,
) -> str:
    """
    Bearer token hash first, then forwarded IP, then peer IP.

    With ``by_token=False`` the Authorization header is ignored.
    """
    authorization = request.headers.get("Authorization", "") if by_token else ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return f"token:{hashlib.sha256(token.strip().encode()).hexdigest()[:16]}"

    for header in trusted_proxy_headers:
        forwarded = request.headers.get(header)
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"

    if request.client:
        return f"ip:{request.client.host}"
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over the limit with 429 and Retry-After."""

    def __init__(
        self,
        app: FastAPI,
        config: Optional[RateLimitConfig] = None,
        limiter: Optional[InMemoryRateLimiter] = None,
    ):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.limiter = limiter or InMemoryRateLimiter(self.config)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not self.config.enabled or path.startswith(self.config.excluded_paths):
            return await call_next(request)

        # Credential endpoints are limited per address
        group, _ = self.config.limit_for(path)
        identifier = client_identifier(
            request,
            self.config.trusted_proxy_headers,
            by_token=group == "default",
        )
        allowed, remaining, retry_after = await self.limiter.check_rate_limit(identifier, path)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {identifier} on {path}")
            error = RateLimitError(self.limiter.get_limit_for_endpoint(path), "minute")
            return create_error_response(
                message=error.message,
                code=error.code,
                status_code=error.status_code,
                detail=error.detail,
                headers={
                    "Retry-After": str(max(1, math.ceil(retry_after))),
                    "X-Rate-Limit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-Rate-Limit-Remaining"] = str(remaining)
        return response


def setup_rate_limiting(
    app: FastAPI,
    config: Optional[RateLimitConfig] = None,
) -> InMemoryRateLimiter:
    """Configure rate limiting middleware and return its limiter."""
    if config is None:
        config = RateLimitConfig()

    limiter = InMemoryRateLimiter(config)
    app.add_middleware(RateLimitMiddleware, config=config, limiter=limiter)

    return limiter
