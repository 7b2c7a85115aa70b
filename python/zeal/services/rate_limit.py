"""Per-user request rate limiting.

Fixed-window counters keyed by "{scope}:{user_id}". Two backends:
- InMemoryRateLimiter: process-local dict, swept periodically by the API lifespan
- RedisRateLimiter: shared across processes with INCR + EXPIRE

Redis keys:
- rate:{scope}:{user_id}:{window_index} - Request counter for one window

Fail modes:
- Redis unavailable: fail open (request allowed, warning logged)
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import redis

from zeal.config import Settings
from zeal.errors import RateLimitedError
from zeal.logging import get_logger

logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one counted request."""

    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class RateLimiter(ABC):
    """Counts requests per key inside fixed windows."""

    @abstractmethod
    def hit(
        self, key: str, limit: int, window_s: int = DEFAULT_WINDOW_SECONDS, now: float | None = None
    ) -> RateLimitResult:
        """Count one request for key and report whether it is allowed."""

    @abstractmethod
    def sweep(self, now: float | None = None) -> int:
        """Drop expired windows. Returns how many were removed."""

    def check(
        self, key: str, limit: int, window_s: int = DEFAULT_WINDOW_SECONDS
    ) -> RateLimitResult:
        """hit() that raises when the limit is exceeded.

        Raises:
            RateLimitedError(E_RATE_LIMITED): Limit exceeded for this window.
        """
        result = self.hit(key, limit, window_s)
        if not result.allowed:
            logger.warning("rate_limit_blocked", key=key.split(":", 1)[0], limit=limit)
            raise RateLimitedError(
                f"Rate limit exceeded: {limit} requests per {window_s} seconds",
                retry_after=result.retry_after,
            )
        return result


def _retry_after(now: float, window_s: int) -> int:
    return max(1, math.ceil(window_s - (now % window_s)))


class InMemoryRateLimiter(RateLimiter):
    """Process-local fixed-window limiter. Thread-safe."""

    def __init__(self) -> None:
        self._windows: dict[str, tuple[float, int, int]] = {}
        self._lock = threading.Lock()

    def hit(
        self, key: str, limit: int, window_s: int = DEFAULT_WINDOW_SECONDS, now: float | None = None
    ) -> RateLimitResult:
        now = time.time() if now is None else now
        window_start = now - (now % window_s)

        with self._lock:
            start, count, _ = self._windows.get(key, (window_start, 0, window_s))
            if start != window_start:
                count = 0
            count += 1
            self._windows[key] = (window_start, count, window_s)

        return RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            retry_after=_retry_after(now, window_s),
        )

    def sweep(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        with self._lock:
            expired = [
                key
                for key, (start, _, window_s) in self._windows.items()
                if start + window_s <= now
            ]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimiter(RateLimiter):
    """Shared fixed-window limiter backed by Redis."""

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    def hit(
        self, key: str, limit: int, window_s: int = DEFAULT_WINDOW_SECONDS, now: float | None = None
    ) -> RateLimitResult:
        now = time.time() if now is None else now
        redis_key = f"rate:{key}:{int(now // window_s)}"

        try:
            pipe = self._redis.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, window_s * 2)
            count = int(pipe.execute()[0])
        except redis.RedisError as e:
            logger.warning("rate_limit_check_failed", error=str(e))
            # Fail open
            return RateLimitResult(allowed=True, limit=limit, remaining=limit, retry_after=0)

        return RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            retry_after=_retry_after(now, window_s),
        )

    def sweep(self, now: float | None = None) -> int:
        # Redis expires the window keys itself
        return 0


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Redis-backed limiter when REDIS_URL is set, in-memory otherwise."""
    if settings.redis_url:
        return RedisRateLimiter(redis.Redis.from_url(settings.redis_url))
    return InMemoryRateLimiter()


# Global rate limiter instance (initialized by app startup)
_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter, creating an in-memory one if unset."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = InMemoryRateLimiter()
    return _rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Set (or reset with None) the global rate limiter instance."""
    global _rate_limiter
    _rate_limiter = limiter
