"""Client-side rate limiting for Kubernetes API calls."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Generator

from metrics import RATE_LIMIT_WAIT_SECONDS

logger = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe token bucket rate limiter.

    Allows up to `burst` requests at once, refilling at `qps` tokens per
    second, so a single reconcile storm cannot flood the API server.
    """

    def __init__(self, qps: float = 20.0, burst: int = 30) -> None:
        """Initialize rate limiter.

        Args:
            qps: Sustained requests per second. 0 disables limiting.
            burst: Bucket size, the number of requests allowed back to back
        """
        self._qps = qps
        self._burst = max(burst, 1)
        self._tokens = float(self._burst)
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()

        logger.info("Rate limiter initialized: qps=%.1f, burst=%d", qps, self._burst)

    def _reserve(self) -> float:
        """Take a token and return how long the caller must wait for it."""
        with self._lock:
            now = time.monotonic()
            self._tokens = min(
                float(self._burst), self._tokens + (now - self._last_refill) * self._qps
            )
            self._last_refill = now
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self._qps

    @contextmanager
    def acquire(self) -> Generator[None, None, None]:
        """Wait for a token (context manager).

        Usage:
            with rate_limiter.acquire():
                # make API call
        """
        if self._qps > 0:
            wait = self._reserve()
            if wait > 0:
                time.sleep(wait)
                RATE_LIMIT_WAIT_SECONDS.observe(wait)
        yield

    def __repr__(self) -> str:
        return f"RateLimiter(qps={self._qps}, burst={self._burst})"
