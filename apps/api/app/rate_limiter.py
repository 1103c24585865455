"""Fixed-window request rate limiting per client identity."""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import redis.asyncio as redis
from fastapi import Request, Response

from errors import ApiError

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "ratelimit"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.remaining)),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


@dataclass
class _Window:
    count: int
    reset_at: float


class MemoryRateLimiter:
    """Per-process counters. Suitable for a single worker."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        cleanup_interval_seconds: int = 600,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = asyncio.Lock()
        self._last_cleanup = clock()

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval_seconds:
            return
        self._last_cleanup = now
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]

    async def hit(self, identity: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            self._cleanup(now)

            window = self._windows.get(identity)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[identity] = window

            if window.count >= self.max_requests:
                return RateLimitResult(False, self.max_requests, 0, window.reset_at)

            window.count += 1
            return RateLimitResult(True, self.max_requests, self.max_requests - window.count, window.reset_at)

    async def close(self):
        pass


class RedisRateLimiter:
    """Counters shared through Redis, so every worker sees the same window."""

    def __init__(self, client: redis.Redis, max_requests: int, window_seconds: int):
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def hit(self, identity: str) -> RateLimitResult:
        key = f"{RATE_LIMIT_KEY_PREFIX}:{identity}"
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, self.window_seconds, nx=True)
            pipe.ttl(key)
            count, _, ttl = await pipe.execute()

        if ttl is None or ttl < 0:
            ttl = self.window_seconds
        reset_at = time.time() + ttl
        count = int(count)
        if count > self.max_requests:
            return RateLimitResult(False, self.max_requests, 0, reset_at)
        return RateLimitResult(True, self.max_requests, self.max_requests - count, reset_at)

    async def close(self):
        await self.client.aclose()


# Global limiter instance
_limiter = None


def init_rate_limiter(max_requests: int, window_seconds: int, redis_url: Optional[str] = None):
    """Create the process-wide limiter (Redis-backed when redis_url is set)."""
    global _limiter
    if redis_url:
        client = redis.from_url(redis_url, decode_responses=True)
        _limiter = RedisRateLimiter(client, max_requests, window_seconds)
        logger.info(f"Rate limiting via Redis: {max_requests} requests per {window_seconds}s")
    else:
        _limiter = MemoryRateLimiter(max_requests, window_seconds)
        logger.info(f"Rate limiting in memory: {max_requests} requests per {window_seconds}s")
    return _limiter


async def close_rate_limiter():
    global _limiter
    if _limiter:
        await _limiter.close()
        _limiter = None


def get_rate_limiter():
    if _limiter is None:
        raise RuntimeError("Rate limiter not initialized. Call init_rate_limiter() first.")
    return _limiter


def get_client_identity(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitExceeded(ApiError):
    def __init__(self, result: RateLimitResult):
        seconds = max(0, math.ceil(result.reset_at - time.time()))
        minutes = max(1, math.ceil(seconds / 60))
        plural = "" if minutes == 1 else "s"
        super().__init__(
            f"Rate limit exceeded. You can make {result.limit} requests per time window. "
            f"Please try again in {minutes} minute{plural}.",
            status_code=429,
            code="RATE_LIMIT_EXCEEDED",
        )
        self.headers = result.headers()


async def enforce_rate_limit(request: Request, response: Response) -> RateLimitResult:
    """FastAPI dependency: count the call and reject it once the window is full."""
    result = await get_rate_limiter().hit(get_client_identity(request))
    if not result.allowed:
        raise RateLimitExceeded(result)

    for name, value in result.headers().items():
        response.headers[name] = value
    return result
