"""Blocking fixed-window rate limiter for a single upstream provider."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from .utils.logging_setup import setup_logger

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("rate_limiter")


class RateLimiter:
    """Grant at most ``limit`` acquisitions per ``window`` seconds.

    The first acquisition opens a window. Once the quota of the window is
    used up, callers sleep until the window ends instead of failing, then
    compete for the next window. One instance belongs to exactly one
    provider.
    """

    def __init__(
        self,
        limit: int = 10,
        window: float = 60.0,
        *,
        name: str = "upstream",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window <= 0:
            raise ValueError("window must be positive")
        self.limit = limit
        self.window = float(window)
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._window_start: float | None = None
        self._used = 0

    def _try_consume(self, now: float) -> float | None:
        """Consume one unit and return None, or return the seconds to wait."""

        with self._lock:
            if self._window_start is None or now - self._window_start >= self.window:
                self._window_start = now
                self._used = 0
            if self._used < self.limit:
                self._used += 1
                return None
            return self._window_start + self.window - now

    def acquire(self) -> float:
        """Block until a slot is free, consume it and return the time waited."""

        waited = 0.0
        while True:
            wait_for = self._try_consume(self._clock())
            if wait_for is None:
                return waited
            LOGGER.warning(
                "Rate limit for %s reached (%s/%.0fs), waiting %.1f seconds",
                self.name,
                self.limit,
                self.window,
                wait_for,
            )
            self._sleep(wait_for)
            waited += wait_for

    @property
    def remaining(self) -> int:
        with self._lock:
            if self._window_start is None or self._clock() - self._window_start >= self.window:
                return self.limit
            return self.limit - self._used
