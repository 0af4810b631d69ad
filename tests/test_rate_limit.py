import pytest

from lead_intake.services.rate_limit import (
    RATE_LIMITS,
    InMemoryRateLimiter,
    RateLimit,
    RedisRateLimiter,
    build_rate_limiter,
    get_client_ip,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.ops = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self
        return record

    def execute(self):
        return [getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.ops]


class FakeRedis:
    """Just enough sorted-set behaviour for the limiter."""

    def __init__(self):
        self.sets = {}

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def zremrangebyscore(self, key, low, high):
        members = self.sets.get(key, {})
        doomed = [m for m, s in members.items() if s <= high]
        for m in doomed:
            del members[m]
        return len(doomed)

    def zcard(self, key):
        return len(self.sets.get(key, {}))

    def zadd(self, key, mapping):
        self.sets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def expire(self, key, seconds):
        return True

    def zrem(self, key, member):
        return 1 if self.sets.get(key, {}).pop(member, None) is not None else 0

    def zrange(self, key, start, end, withscores=False):
        items = sorted(self.sets.get(key, {}).items(), key=lambda kv: kv[1])
        return items[start:end + 1]


class BrokenRedis:
    def pipeline(self, transaction=True):
        raise ConnectionError("redis is down")


LIMIT = RateLimit(3, 60, "rl:test")


@pytest.fixture(params=["memory", "redis"])
def limiter_and_clock(request):
    clock = FakeClock()
    if request.param == "memory":
        return InMemoryRateLimiter(clock=clock), clock
    return RedisRateLimiter(FakeRedis(), clock=clock), clock


def test_allows_up_to_limit_then_denies(limiter_and_clock):
    limiter, clock = limiter_and_clock
    remaining = []
    for _ in range(3):
        result = limiter.check("1.2.3.4", LIMIT)
        assert result.allowed
        remaining.append(result.remaining)
        clock.now += 1
    assert remaining == [2, 1, 0]

    denied = limiter.check("1.2.3.4", LIMIT)
    assert not denied.allowed
    assert denied.remaining == 0
    # oldest hit was at t0, so the window frees up at t0 + 60
    assert denied.reset_at == 1_000_060.0
    assert denied.retry_after == 57


def test_window_slides(limiter_and_clock):
    limiter, clock = limiter_and_clock
    for _ in range(3):
        limiter.check("ip", LIMIT)
    assert not limiter.check("ip", LIMIT).allowed
    clock.now += 61
    assert limiter.check("ip", LIMIT).allowed


def test_denied_requests_do_not_extend_the_window(limiter_and_clock):
    limiter, clock = limiter_and_clock
    for _ in range(3):
        limiter.check("ip", LIMIT)
    for _ in range(10):
        clock.now += 5
        limiter.check("ip", LIMIT)
    clock.now = 1_000_061.0
    assert limiter.check("ip", LIMIT).allowed


def test_clients_and_budgets_are_independent(limiter_and_clock):
    limiter, _ = limiter_and_clock
    for _ in range(3):
        limiter.check("a", LIMIT)
    assert not limiter.check("a", LIMIT).allowed
    assert limiter.check("b", LIMIT).allowed
    assert limiter.check("a", RateLimit(3, 60, "rl:other")).allowed


def test_redis_failure_fails_open():
    limiter = RedisRateLimiter(BrokenRedis(), clock=FakeClock())
    result = limiter.check("ip", LIMIT)
    assert result.allowed
    assert result.remaining == 3


def test_memory_reset():
    limiter = InMemoryRateLimiter(clock=FakeClock())
    for _ in range(3):
        limiter.check("ip", LIMIT)
    limiter.reset()
    assert limiter.check("ip", LIMIT).allowed


def test_memory_forgets_idle_clients():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock)
    for i in range(500):
        limiter.check(f"10.0.{i // 256}.{i % 256}", LIMIT)
    assert len(limiter) == 500

    clock.now += 3600
    assert limiter.check("203.0.113.1", LIMIT).allowed
    assert len(limiter) == 1


def test_memory_sweep_keeps_active_windows():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock, sweep_interval=10)
    for _ in range(3):
        limiter.check("busy", LIMIT)
    limiter.check("idle", RateLimit(3, 5, "rl:short"))
    clock.now += 30
    assert not limiter.check("busy", LIMIT).allowed
    assert len(limiter) == 1


def test_configured_budgets():
    assert RATE_LIMITS["assessment_submit"] == RateLimit(10, 60, "rl:assessment")
    assert RATE_LIMITS["assessment_questions"].requests == 30
    assert len({b.key_prefix for b in RATE_LIMITS.values()}) == len(RATE_LIMITS)


def test_without_redis_url_uses_memory():
    assert isinstance(build_rate_limiter(None), InMemoryRateLimiter)


@pytest.mark.parametrize("headers,peer,expected", [
    ({"x-forwarded-for": "203.0.113.9, 10.0.0.1"}, "10.0.0.1", "203.0.113.9"),
    ({"x-real-ip": "198.51.100.4"}, "10.0.0.1", "198.51.100.4"),
    ({}, "10.0.0.1", "10.0.0.1"),
    ({}, None, "unknown"),
])
def test_client_ip(headers, peer, expected):
    assert get_client_ip(headers, peer) == expected
