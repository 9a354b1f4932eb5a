"""
Unit tests for the sliding-window rate limiter.

Run: pytest tests/unit/test_rate_limit.py -v
"""

import pytest

from edge.core.errors import RateLimitExceeded
from edge.core.rate_limit import RateLimiter


class ManualClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


class TestCheck:
    """Test allow/deny decisions within one window."""

    def test_allows_up_to_limit(self, limiter):
        results = [limiter.check("c:lesson", limit=3) for _ in range(3)]

        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]

    def test_denies_over_limit(self, limiter, clock):
        for _ in range(3):
            limiter.check("c:lesson", limit=3)
        clock.now += 10

        denied = limiter.check("c:lesson", limit=3)

        assert denied.allowed is False
        assert denied.remaining == 0
        assert denied.retry_after == 50

    def test_denied_request_is_not_recorded(self, limiter, clock):
        limiter.check("k", limit=1)
        for _ in range(5):
            limiter.check("k", limit=1)
        clock.now += 60

        assert limiter.check("k", limit=1).allowed is True

    def test_window_slides(self, limiter, clock):
        limiter.check("k", limit=2)
        clock.now += 30
        limiter.check("k", limit=2)
        clock.now += 31

        # First instant left the window; one slot is free again
        result = limiter.check("k", limit=2)
        assert result.allowed is True
        assert result.remaining == 0

    def test_retry_after_minimum_one_second(self, limiter, clock):
        limiter.check("k", limit=1)
        clock.now += 59.9

        assert limiter.check("k", limit=1).retry_after == 1

    def test_keys_are_independent(self, limiter):
        limiter.check("a:mission", limit=1)

        assert limiter.check("a:mission", limit=1).allowed is False
        assert limiter.check("b:mission", limit=1).allowed is True
        assert limiter.check("a:lesson", limit=1).allowed is True

    def test_never_more_than_limit_in_any_window(self, limiter, clock):
        allowed_at = []
        for step in range(200):
            clock.now = 1000.0 + step * 1.5
            if limiter.check("k", limit=5).allowed:
                allowed_at.append(clock.now)

        for i, start in enumerate(allowed_at):
            in_window = [t for t in allowed_at[i:] if t - start < 60]
            assert len(in_window) <= 5


class TestEnforce:
    def test_raises_with_retry_after(self, limiter):
        limiter.enforce("k", limit=1)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.enforce("k", limit=1)

        assert exc_info.value.retry_after == 60
        assert exc_info.value.limit == 1
        assert exc_info.value.status_code == 429


class TestSweep:
    def test_idle_keys_removed(self, limiter, clock):
        limiter.check("old", limit=5)
        clock.now += 100
        limiter.check("fresh", limit=5)
        clock.now += 30

        removed = limiter.sweep()

        assert removed == 1
        assert len(limiter) == 1

    def test_opportunistic_sweep(self, clock):
        limiter = RateLimiter(clock=clock, sweep_interval=300)
        limiter.check("old", limit=5)
        clock.now += 301

        limiter.check("new", limit=5)

        assert len(limiter) == 1
