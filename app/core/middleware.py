"""HTTP middleware: rate limiting, request logging and security headers."""

import logging
import time
from uuid import uuid4

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from app.config import settings
from app.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

RATE_LIMIT_EXEMPT_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")
RATE_LIMIT_WINDOW_SECONDS = 60
SLOW_REQUEST_SECONDS = 1.0


def get_client_ip(request: Request) -> str:
    """Best guess at the caller's address, honouring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP sliding window kept in a Redis sorted set.

    When Redis cannot be reached the request is let through and a warning is
    logged; booking traffic is never blocked by the limiter's own outage.
    """

    def __init__(self, app, requests_per_minute: int = 100, redis_url: str | None = None):
        super().__init__(app)
        self.limit = requests_per_minute
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def _hits_in_window(self, key: str, now: float) -> int:
        """Record this hit and return how many came before it in the window."""
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, now - RATE_LIMIT_WINDOW_SECONDS)
            pipe.zcard(key)
            pipe.zadd(key, {uuid4().hex: now})
            pipe.expire(key, RATE_LIMIT_WINDOW_SECONDS)
            _, previous_hits, _, _ = await pipe.execute()
        return previous_hits

    def _limit_headers(self, remaining: int, reset_at: int) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(reset_at),
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        now = time.time()
        reset_at = int(now) + RATE_LIMIT_WINDOW_SECONDS
        try:
            previous_hits = await self._hits_in_window(f"rate_limit:{get_client_ip(request)}", now)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        if previous_hits >= self.limit:
            exc = RateLimitExceeded()
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail, "code": exc.code, "retryable": True},
                headers={
                    "Retry-After": str(RATE_LIMIT_WINDOW_SECONDS),
                    **self._limit_headers(0, reset_at),
                },
            )

        response = await call_next(request)
        response.headers.update(self._limit_headers(self.limit - previous_hits - 1, reset_at))
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"

        level = logging.WARNING if elapsed > SLOW_REQUEST_SECONDS else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed:.3f}s request_id={request_id}",
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the standard hardening headers to every response."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        if not settings.debug:
            # HSTS only makes sense behind TLS
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
