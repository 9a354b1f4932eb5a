"""
Sliding-window rate limiter.

One instance is created at startup and shared by reference; it keeps, per
key, the instants of the requests made within the trailing window. Keys are
normally "{client}:{endpoint}".
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from edge.core.errors import RateLimitExceeded

DEFAULT_WINDOW_SECONDS = 60.0
SWEEP_INTERVAL_SECONDS = 300.0


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int  # whole seconds; 0 when allowed


class RateLimiter:
    """In-memory sliding-window counter keyed by client and endpoint."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._windows: dict[str, list[float]] = {}
        self._idle_after: dict[str, float] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, key: str, limit: int, window: float = DEFAULT_WINDOW_SECONDS) -> RateLimitResult:
        """
        Count one request against ``key``.

        Args:
            key: Client/endpoint identity
            limit: Max requests allowed in the window
            window: Window length in seconds

        Returns:
            RateLimitResult; a denied request is not recorded.
        """
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep_locked(now)

            instants = [t for t in self._windows.get(key, []) if now - t < window]
            self._idle_after[key] = 2 * window

            if len(instants) >= limit:
                self._windows[key] = instants
                retry_after = max(1, math.ceil(instants[0] + window - now))
                return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

            instants.append(now)
            self._windows[key] = instants
            return RateLimitResult(allowed=True, remaining=limit - len(instants), retry_after=0)

    def enforce(self, key: str, limit: int, window: float = DEFAULT_WINDOW_SECONDS) -> RateLimitResult:
        """Like :meth:`check`, but raise RateLimitExceeded on denial."""
        result = self.check(key, limit, window)
        if not result.allowed:
            logger.info(f"Rate limit hit for {key} (limit={limit}, retry in {result.retry_after}s)")
            raise RateLimitExceeded(
                "Too many requests. Please wait before trying again.",
                retry_after=result.retry_after,
                limit=limit,
            )
        return result

    def sweep(self) -> int:
        """Drop keys with no activity for twice their window. Returns keys removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        stale = [
            key
            for key, instants in self._windows.items()
            if not instants or now - instants[-1] >= self._idle_after.get(key, 2 * DEFAULT_WINDOW_SECONDS)
        ]
        for key in stale:
            del self._windows[key]
            self._idle_after.pop(key, None)
        self._last_sweep = now
        if stale:
            logger.debug(f"Rate limiter swept {len(stale)} idle keys")
        return len(stale)
