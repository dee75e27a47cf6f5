"""
Rate limiting for public endpoints
Uses in-memory storage with a fixed window per client IP
"""
import math
import threading
import time
from typing import Callable, Dict, Tuple

from fastapi import Request

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Try again later."


class RateLimitExceeded(Exception):
    """Raised by the RateLimit dependency; rendered as a 429"""

    def __init__(self, limit: int, retry_after: int):
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(RATE_LIMIT_MESSAGE)


class FixedWindowRateLimiter:
    """
    In-memory rate limiter using a fixed window per identifier.

    Counters live in this process only: behind several server instances
    each one enforces its own limit.
    """

    def __init__(self, max_requests: int = 5, window_seconds: int = 60,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # {identifier: (window_start, count)}
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()
        self._cleanup_interval = window_seconds

    def _cleanup_expired_windows(self, now: float) -> None:
        """Drop windows that have already elapsed"""
        if now - self._last_cleanup < self._cleanup_interval:
            return

        for identifier, (start, _) in list(self._windows.items()):
            if now - start >= self.window_seconds:
                del self._windows[identifier]

        self._last_cleanup = now

    def is_allowed(self, identifier: str) -> Tuple[bool, int, int]:
        """
        Count a request against ``identifier``.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        with self._lock:
            now = self._clock()
            self._cleanup_expired_windows(now)

            start, count = self._windows.get(identifier, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0

            if count >= self.max_requests:
                retry_after = max(1, math.ceil(start + self.window_seconds - now))
                return False, 0, retry_after

            count += 1
            self._windows[identifier] = (start, count)
            return True, self.max_requests - count, 0

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def get_client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """Get the client IP, optionally honouring X-Forwarded-For"""
    if trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # Take the first IP in the chain (original client)
            return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


class RateLimit:
    """
    Dependency applying a named limiter from ``app.state.rate_limiters``.

    Usage:
        @router.post("/", dependencies=[Depends(RateLimit("contact"))])
        def create_contact(...):
            ...
    """

    def __init__(self, name: str):
        self.name = name

    async def __call__(self, request: Request) -> None:
        limiter: FixedWindowRateLimiter = request.app.state.rate_limiters[self.name]
        trust_proxy = request.app.state.settings.TRUST_PROXY_HEADERS
        client_ip = get_client_ip(request, trust_proxy)

        is_allowed, remaining, retry_after = limiter.is_allowed(f"{self.name}:ip:{client_ip}")
        if not is_allowed:
            raise RateLimitExceeded(limiter.max_requests, retry_after)

        request.state.rate_limit_remaining = remaining
