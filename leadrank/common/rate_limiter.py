"""
Request pacing for embedding providers.

Free-tier embedding quotas are counted per minute. The gateway acquires a
slot before every provider request so concurrent chunk requests stay under
that budget instead of tripping 429s and burning retries.

Uses a sliding one-minute window.

Usage:
    limiter = get_rate_limiter("gemini")

    await limiter.acquire_async()  # Waits if the window is full
    vectors = await provider.embed(texts)
"""

import asyncio
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from leadrank.common.logger import get_logger

logger = get_logger(__name__, layer="rate_limiter")


# Requests per minute per embedding backend
DEFAULT_RATE_LIMITS: Dict[str, int] = {
    "openai": 3000,
    "gemini": 100,
    "huggingface": 300,
}


@dataclass
class RateLimitStats:
    """Statistics for rate limiting."""
    total_requests: int = 0
    requests_this_minute: int = 0
    waits_count: int = 0
    total_wait_time_seconds: float = 0.0
    last_request_at: Optional[datetime] = None


class RateLimiter:
    """
    Sliding-window request pacer for one provider.

    acquire_async() never gives up: embedding calls are already bounded by
    the gateway's retry budget, so the limiter only delays.
    """

    def __init__(self, provider: str, requests_per_minute: int = 60, window_seconds: float = 60.0):
        """
        Args:
            provider: Provider name for logging/stats
            requests_per_minute: Maximum requests inside one window
            window_seconds: Window length (tests shrink this)
        """
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be >= 1")
        self.provider = provider
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds

        self._window: deque = deque()
        self._lock = threading.Lock()
        self._stats = RateLimitStats()

    def _clean_window(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()

    def _try_acquire(self) -> float:
        """Record a request if the window has room; else return the wait time."""
        with self._lock:
            now = time.monotonic()
            self._clean_window(now)
            if len(self._window) < self.requests_per_minute:
                self._window.append(now)
                self._stats.total_requests += 1
                self._stats.requests_this_minute = len(self._window)
                self._stats.last_request_at = datetime.now(timezone.utc)
                return 0.0
            return max(0.0, self._window[0] + self.window_seconds - now)

    async def acquire_async(self) -> None:
        """Wait until a request slot is free, then take it."""
        while True:
            wait_time = self._try_acquire()
            if wait_time <= 0:
                return
            logger.debug(f"{self.provider} window full, waiting {wait_time:.2f}s")
            with self._lock:
                self._stats.waits_count += 1
                self._stats.total_wait_time_seconds += wait_time
            await asyncio.sleep(wait_time)

    def get_stats(self) -> RateLimitStats:
        with self._lock:
            self._clean_window(time.monotonic())
            return RateLimitStats(
                total_requests=self._stats.total_requests,
                requests_this_minute=len(self._window),
                waits_count=self._stats.waits_count,
                total_wait_time_seconds=self._stats.total_wait_time_seconds,
                last_request_at=self._stats.last_request_at,
            )

    def reset(self) -> None:
        with self._lock:
            self._window.clear()
            self._stats = RateLimitStats()


_limiters: Dict[str, RateLimiter] = {}
_registry_lock = threading.Lock()


def get_rate_limiter(provider: str, requests_per_minute: Optional[int] = None) -> RateLimiter:
    """
    Get the shared limiter for a provider, creating it on first use.

    Args:
        provider: Provider name
        requests_per_minute: Override the default RPM (first call only)
    """
    with _registry_lock:
        if provider not in _limiters:
            _limiters[provider] = RateLimiter(
                provider=provider,
                requests_per_minute=requests_per_minute or DEFAULT_RATE_LIMITS.get(provider, 60),
            )
        return _limiters[provider]


def reset_rate_limiters() -> None:
    """Reset and drop all shared limiters."""
    with _registry_lock:
        for limiter in _limiters.values():
            limiter.reset()
        _limiters.clear()
