"""Fixed-window request limiting keyed by client address.

The counter store is handed to the middleware by the application factory so
several processes can share one Redis instance instead of per-process memory.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Tuple

import redis
from cachetools import TTLCache
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shared.core import get_logger

logger = get_logger(__name__)


class RateLimitStore(Protocol):
    def hit(self, key: str, window_seconds: int) -> int:
        """Count one request against ``key`` and return the count in the window."""

    def ping(self) -> bool:
        ...


class InMemoryRateLimitStore:
    """Single-process store backed by a TTL cache."""

    def __init__(self, window_seconds: int, maxsize: int = 10000):
        self._cache = TTLCache(maxsize=maxsize, ttl=window_seconds)
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int) -> int:
        with self._lock:
            count = self._cache.get(key, 0) + 1
            self._cache[key] = count
            return count

    def ping(self) -> bool:
        return True


class RedisRateLimitStore:
    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        return cls(redis.from_url(url, decode_responses=True, socket_connect_timeout=1))

    def hit(self, key: str, window_seconds: int) -> int:
        pipe = self._client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        count, _ = pipe.execute()
        return int(count)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


def build_rate_limit_store(redis_url: Optional[str], window_seconds: int) -> RateLimitStore:
    if redis_url:
        store = RedisRateLimitStore.from_url(redis_url)
        if store.ping():
            logger.info("Rate limiting backed by Redis")
            return store
        logger.warning("Redis unreachable, rate limiting falls back to process memory")
    return InMemoryRateLimitStore(window_seconds)


def client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


class RateLimiter:
    def __init__(self, store: RateLimitStore, limit: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock

    def check(self, client: str) -> Tuple[bool, int, datetime]:
        """Return (allowed, remaining, reset time) for one request."""
        now = self.clock()
        window_start = int(now // self.window_seconds) * self.window_seconds
        reset = datetime.fromtimestamp(window_start + self.window_seconds, tz=timezone.utc)
        count = self.store.hit(f"ratelimit:{client}:{window_start}", self.window_seconds)
        if count > self.limit:
            return False, 0, reset
        return True, self.limit - count, reset


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXEMPT_PREFIXES = ("/health", "/metrics", "/api/docs", "/api/openapi.json")

    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.startswith(self.EXEMPT_PREFIXES):
            return await call_next(request)

        client = client_address(request)
        allowed, remaining, reset = self.limiter.check(client)
        headers = {
            "X-RateLimit-Limit": str(self.limiter.limit),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": reset.isoformat(),
        }
        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={'extra_fields': {'client': client, 'path': request.url.path}}
            )
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Rate limit exceeded",
                    "limit": self.limiter.limit,
                    "windowSeconds": self.limiter.window_seconds,
                    "reset": reset.isoformat(),
                },
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
