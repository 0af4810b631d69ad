# lead_intake/services/rate_limit.py
"""
Per-client sliding-window rate limiting.

RedisRateLimiter keeps one sorted set per (budget, client) with request
timestamps as scores. Trim, count and add run in a single MULTI/EXEC pipeline
so concurrent callers cannot both slip under the limit. A request that ends
up over the limit removes its own entry again.

The limiter fails open: if the store errors, the request is allowed.
"""

import logging
import math
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Mapping, Optional

import redis

logger = logging.getLogger("intake.rate_limit")


@dataclass(frozen=True)
class RateLimit:
    requests: int
    window_seconds: int
    key_prefix: str


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds
    retry_after: int  # seconds, 0 when allowed


RATE_LIMITS: Dict[str, RateLimit] = {
    "form_submit": RateLimit(10, 60, "rl:submit"),
    "assessment_submit": RateLimit(10, 60, "rl:assessment"),
    "demo_submit": RateLimit(10, 60, "rl:demo"),
    "assessment_questions": RateLimit(30, 60, "rl:questions"),
    "quiz_submit": RateLimit(10, 60, "rl:quiz"),
}


def _denied(now: float, oldest: Optional[float], limit: RateLimit) -> RateLimitResult:
    reset_at = (oldest if oldest is not None else now) + limit.window_seconds
    return RateLimitResult(
        allowed=False,
        remaining=0,
        reset_at=reset_at,
        retry_after=max(1, math.ceil(reset_at - now)),
    )


class RateLimiter:
    def check(self, client_id: str, limit: RateLimit) -> RateLimitResult:
        raise NotImplementedError


class RedisRateLimiter(RateLimiter):
    def __init__(self, redis_client, clock: Callable[[], float] = time.time):
        self.redis = redis_client
        self.clock = clock

    def check(self, client_id: str, limit: RateLimit) -> RateLimitResult:
        key = f"{limit.key_prefix}:{client_id}"
        now = self.clock()
        window_start = now - limit.window_seconds
        member = f"{now}-{uuid.uuid4().hex[:8]}"

        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.zremrangebyscore(key, "-inf", window_start)
            pipe.zcard(key)
            pipe.zadd(key, {member: now})
            pipe.expire(key, limit.window_seconds + 1)
            results = pipe.execute()
            count = int(results[1])

            if count >= limit.requests:
                self.redis.zrem(key, member)
                oldest = self.redis.zrange(key, 0, 0, withscores=True)
                oldest_ts = float(oldest[0][1]) if oldest else None
                return _denied(now, oldest_ts, limit)

            return RateLimitResult(
                allowed=True,
                remaining=limit.requests - count - 1,
                reset_at=now + limit.window_seconds,
                retry_after=0,
            )
        except Exception as e:
            # fail open
            logger.warning("Rate limit store error for %s: %s", key, e)
            return RateLimitResult(
                allowed=True,
                remaining=limit.requests,
                reset_at=now + limit.window_seconds,
                retry_after=0,
            )


class InMemoryRateLimiter(RateLimiter):
    """
    Same sliding window kept in process memory.
    Single-instance deployments and tests only.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0):
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self._windows: Dict[str, int] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        """Forget keys with no hits left in their window. Caller holds the lock."""
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= now - self._windows[k]]
        for k in stale:
            del self._hits[k]
            del self._windows[k]
        self._last_sweep = now
        if stale:
            logger.debug("Rate limiter dropped %d idle keys", len(stale))

    def check(self, client_id: str, limit: RateLimit) -> RateLimitResult:
        key = f"{limit.key_prefix}:{client_id}"
        now = self.clock()
        window_start = now - limit.window_seconds
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)
            hits = self._hits.setdefault(key, deque())
            self._windows[key] = limit.window_seconds
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= limit.requests:
                return _denied(now, hits[0] if hits else None, limit)
            hits.append(now)
            return RateLimitResult(
                allowed=True,
                remaining=limit.requests - len(hits),
                reset_at=now + limit.window_seconds,
                retry_after=0,
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._hits)


def build_rate_limiter(redis_url: Optional[str]) -> RateLimiter:
    if not redis_url:
        logger.info("REDIS_URL not set; using in-memory rate limiter")
        return InMemoryRateLimiter()
    client = redis.Redis.from_url(redis_url, socket_connect_timeout=2, socket_timeout=2)
    logger.info("Using Redis rate limiter")
    return RedisRateLimiter(client)


def get_client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """First X-Forwarded-For entry, else the socket peer, else 'unknown'."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return peer or "unknown"
