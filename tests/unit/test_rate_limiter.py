"""Tests for the fixed-window rate limiter."""

from cs_tutor.services.rate_limiter import RateLimiter


class FakeClock:

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:

    def test_admits_up_to_max_then_denies(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=3, clock=clock)

        assert all(limiter.admit("ip:1").allowed for _ in range(3))
        decision = limiter.admit("ip:1")
        assert not decision.allowed
        assert decision.retry_after_seconds == 60

    def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
        limiter.admit("k")

        clock.now += 45.5
        assert limiter.admit("k").retry_after_seconds == 15

    def test_retry_after_is_at_least_one(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
        limiter.admit("k")

        clock.now += 60
        decision = limiter.admit("k")
        assert not decision.allowed
        assert decision.retry_after_seconds == 1

    def test_window_restarts_after_expiry(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
        limiter.admit("k")
        assert not limiter.admit("k").allowed

        clock.now += 60.001
        assert limiter.admit("k").allowed
        assert not limiter.admit("k").allowed

    def test_keys_are_independent(self):
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=FakeClock())
        assert limiter.admit("user:a").allowed
        assert limiter.admit("user:b").allowed
        assert not limiter.admit("user:a").allowed

    def test_sweep_drops_expired_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(window_seconds=60, max_requests=5, clock=clock)
        limiter.admit("old")
        clock.now += 30
        limiter.admit("new")

        clock.now += 31
        assert limiter.sweep() == 1
        assert len(limiter) == 1
