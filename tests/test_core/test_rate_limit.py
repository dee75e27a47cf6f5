"""
Unit tests for FixedWindowRateLimiter
"""
from teatrade.core.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindowRateLimiter:
    """Test fixed window counting"""

    def test_sixth_request_in_window_is_rejected(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)

        results = [limiter.is_allowed("ip:1.2.3.4") for _ in range(6)]

        assert [allowed for allowed, _, _ in results] == [True] * 5 + [False]
        assert [remaining for _, remaining, _ in results[:5]] == [4, 3, 2, 1, 0]
        assert results[5][2] == 60

    def test_window_resets_after_expiry(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)
        for _ in range(5):
            limiter.is_allowed("ip:1.2.3.4")

        clock.now += 30
        allowed, _, retry_after = limiter.is_allowed("ip:1.2.3.4")
        assert not allowed
        assert retry_after == 30

        clock.now += 30
        allowed, remaining, _ = limiter.is_allowed("ip:1.2.3.4")
        assert allowed
        assert remaining == 4

    def test_identifiers_are_independent(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())

        assert limiter.is_allowed("ip:a")[0]
        assert not limiter.is_allowed("ip:a")[0]
        assert limiter.is_allowed("ip:b")[0]

    def test_expired_windows_are_swept(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.is_allowed("ip:a")

        clock.now += 61
        limiter.is_allowed("ip:b")

        assert "ip:a" not in limiter._windows
        assert "ip:b" in limiter._windows

    def test_reset(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.is_allowed("ip:a")

        limiter.reset()

        assert limiter.is_allowed("ip:a")[0]
