from concurrent.futures import ThreadPoolExecutor

from accesscore.middleware.rate_limit import (
    RATE_LIMITS,
    RateLimiter,
    rate_limit_headers,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_fixed_window_allows_then_denies_then_resets():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)

    results = [limiter.check("ip:1.2.3.4", 60_000, 3) for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    denied = limiter.check("ip:1.2.3.4", 60_000, 3)
    assert denied.allowed is False
    assert denied.remaining == 0
    assert denied.reset_at == results[0].reset_at

    clock.advance(60)
    fresh = limiter.check("ip:1.2.3.4", 60_000, 3)
    assert fresh.allowed is True
    assert fresh.remaining == 2
    assert fresh.reset_at == clock.now + 60


def test_denied_requests_do_not_extend_the_window():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check("k", 1_000, 1)

    clock.advance(0.5)
    assert limiter.check("k", 1_000, 1).allowed is False

    clock.advance(0.5)
    assert limiter.check("k", 1_000, 1).allowed is True


def test_identifiers_are_independent():
    limiter = RateLimiter(clock=FakeClock())

    assert limiter.check("a", 60_000, 1).allowed
    assert not limiter.check("a", 60_000, 1).allowed
    assert limiter.check("b", 60_000, 1).allowed


def test_reset_and_clear():
    limiter = RateLimiter(clock=FakeClock())
    limiter.check("a", 60_000, 1)
    limiter.check("b", 60_000, 1)

    limiter.reset("a")
    assert limiter.check("a", 60_000, 1).allowed
    assert not limiter.check("b", 60_000, 1).allowed

    limiter.clear()
    assert len(limiter) == 0


def test_expired_entries_are_purged_past_threshold():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, cleanup_threshold=3)
    for i in range(4):
        limiter.check(f"old-{i}", 1_000, 5)

    clock.advance(2)
    limiter.check("new", 1_000, 5)

    assert len(limiter) == 1


def test_purge_expired_keeps_live_entries():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.check("short", 1_000, 5)
    limiter.check("long", 60_000, 5)

    clock.advance(2)

    assert limiter.purge_expired() == 1
    assert len(limiter) == 1


def test_concurrent_checks_never_exceed_limit():
    limiter = RateLimiter(clock=FakeClock())

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _i: limiter.check("hot", 60_000, 10), range(100)))

    assert sum(1 for r in results if r.allowed) == 10


def test_presets():
    assert (RATE_LIMITS["auth"].window_ms, RATE_LIMITS["auth"].max_requests) == (900_000, 5)
    assert (RATE_LIMITS["api"].window_ms, RATE_LIMITS["api"].max_requests) == (60_000, 60)
    assert (RATE_LIMITS["public"].window_ms, RATE_LIMITS["public"].max_requests) == (60_000, 100)


def test_rate_limit_headers():
    limiter = RateLimiter(clock=FakeClock(now=0.0))
    result = limiter.check("k", 60_000, 5)

    headers = rate_limit_headers(result)

    assert headers == {
        "X-RateLimit-Limit": "5",
        "X-RateLimit-Remaining": "4",
        "X-RateLimit-Reset": "1970-01-01T00:01:00Z",
    }
