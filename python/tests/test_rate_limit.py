"""Tests for per-user rate limiting."""

import pytest
import redis

from zeal.config import get_settings
from zeal.errors import ApiErrorCode, RateLimitedError
from zeal.services.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
    get_rate_limiter,
    set_rate_limiter,
)


class FakePipeline:
    def __init__(self, store: dict):
        self._store = store
        self._ops = []

    def incr(self, key):
        self._ops.append(("incr", key))

    def expire(self, key, seconds):
        self._ops.append(("expire", key))

    def execute(self):
        results = []
        for op, key in self._ops:
            if op == "incr":
                self._store[key] = self._store.get(key, 0) + 1
                results.append(self._store[key])
            else:
                results.append(True)
        return results


class FakeRedis:
    def __init__(self):
        self.store: dict = {}

    def pipeline(self):
        return FakePipeline(self.store)


class BrokenRedis:
    def pipeline(self):
        raise redis.ConnectionError("connection refused")


class TestInMemoryRateLimiter:
    def test_blocks_after_limit_within_window(self):
        limiter = InMemoryRateLimiter()

        results = [limiter.hit("uploads:u1", 2, 60, now=120.0 + i) for i in range(3)]

        assert [r.allowed for r in results] == [True, True, False]
        assert results[1].remaining == 0
        assert results[2].retry_after == 58

    def test_new_window_resets_count(self):
        limiter = InMemoryRateLimiter()
        limiter.hit("uploads:u1", 1, 60, now=10.0)

        assert limiter.hit("uploads:u1", 1, 60, now=70.0).allowed

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter()
        limiter.hit("uploads:u1", 1, 60, now=10.0)

        assert limiter.hit("uploads:u2", 1, 60, now=10.0).allowed
        assert limiter.hit("comments:u1", 1, 60, now=10.0).allowed

    def test_sweep_drops_expired_windows(self):
        limiter = InMemoryRateLimiter()
        limiter.hit("a", 5, 60, now=10.0)
        limiter.hit("b", 5, 60, now=65.0)

        assert limiter.sweep(now=70.0) == 1
        assert len(limiter) == 1

    def test_check_raises_with_retry_after(self):
        limiter = InMemoryRateLimiter()
        limiter.check("comments:u1", 1)

        with pytest.raises(RateLimitedError) as exc_info:
            limiter.check("comments:u1", 1)

        assert exc_info.value.code == ApiErrorCode.E_RATE_LIMITED
        assert 1 <= exc_info.value.retry_after <= 60


class TestRedisRateLimiter:
    def test_counts_per_window_key(self):
        client = FakeRedis()
        limiter = RedisRateLimiter(client)

        assert limiter.hit("uploads:u1", 1, 60, now=125.0).allowed
        assert not limiter.hit("uploads:u1", 1, 60, now=130.0).allowed
        assert client.store == {"rate:uploads:u1:2": 2}

    def test_fails_open_when_redis_unavailable(self):
        limiter = RedisRateLimiter(BrokenRedis())

        result = limiter.hit("uploads:u1", 1)

        assert result.allowed
        assert limiter.sweep() == 0


class TestLimiterSelection:
    def test_in_memory_without_redis_url(self):
        assert isinstance(build_rate_limiter(get_settings()), InMemoryRateLimiter)

    def test_global_limiter_created_lazily(self):
        set_rate_limiter(None)
        limiter = get_rate_limiter()
        assert get_rate_limiter() is limiter
