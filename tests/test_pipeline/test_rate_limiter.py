"""Tests for the per-client rate limiter."""

from __future__ import annotations

import pytest

from cv_docgen.config import RateLimitConfig
from cv_docgen.pipeline.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock) -> RateLimiter:
    return RateLimiter(window_seconds=60, max_requests=10, clock=clock)


class TestRateLimiter:
    def test_allows_up_to_limit(self, limiter):
        decisions = [limiter.check("client") for _ in range(10)]
        assert all(d.allowed for d in decisions)
        assert decisions[0].remaining == 9
        assert decisions[-1].remaining == 0

    def test_eleventh_request_rejected(self, limiter, clock):
        for _ in range(10):
            limiter.check("client")
        clock.advance(15)
        decision = limiter.check("client")
        assert not decision.allowed
        assert decision.remaining == 0
        assert decision.retry_after == 45

    def test_retry_after_at_least_one_second(self, limiter, clock):
        for _ in range(10):
            limiter.check("client")
        clock.advance(59.9)
        assert limiter.check("client").retry_after == 1

    def test_rejections_do_not_extend_window(self, limiter, clock):
        for _ in range(12):
            limiter.check("client")
        clock.advance(60)
        assert limiter.check("client").allowed

    def test_new_window_after_expiry(self, limiter, clock):
        for _ in range(10):
            limiter.check("client")
        clock.advance(60)
        decision = limiter.check("client")
        assert decision.allowed
        assert decision.remaining == 9

    def test_clients_are_independent(self, limiter):
        for _ in range(10):
            limiter.check("a")
        assert not limiter.check("a").allowed
        assert limiter.check("b").allowed

    def test_sweep_evicts_expired(self, limiter, clock):
        limiter.check("old")
        clock.advance(30)
        limiter.check("new")
        clock.advance(31)
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_sweep_nothing_expired(self, limiter):
        limiter.check("a")
        assert limiter.sweep() == 0
        assert len(limiter) == 1

    def test_from_config(self, clock):
        limiter = RateLimiter.from_config(RateLimitConfig(window_seconds=5, max_requests=1), clock)
        assert limiter.check("x").allowed
        assert not limiter.check("x").allowed

    @pytest.mark.parametrize("window,maximum", [(0, 10), (60, 0)])
    def test_invalid_arguments(self, window, maximum):
        with pytest.raises(ValueError):
            RateLimiter(window_seconds=window, max_requests=maximum)
