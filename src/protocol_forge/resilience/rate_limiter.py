"""
Fixed-window rate limiter for generated tools.

Each (protocol, endpoint) pair owns a request counter per aligned time
window. A window starts at a multiple of its length, so a limit of
``{"requests": 10, "window": "1m"}`` allows ten calls between hh:mm:00 and
hh:mm:59.999 and resets at the next minute boundary.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from protocol_forge.protocol.models import WINDOW_SECONDS, RateLimitConfig


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a rate-limit check.

    Attributes:
        allowed: Whether the call may proceed
        remaining: Calls left in the current window after this one
        retry_after: Seconds until the window resets (0 if allowed)
        window_start: Start of the window the call was counted in
    """

    allowed: bool
    remaining: int
    retry_after: float
    window_start: float


class FixedWindowRateLimiter:
    """Shared fixed-window counters keyed by (protocol, endpoint, window start).

    Counter increments happen under a single asyncio lock, so concurrent
    invocations never under- or over-count.

    Example:
        >>> limiter = FixedWindowRateLimiter()
        >>> decision = await limiter.try_acquire("weather-api", "getCurrent", limit)
        >>> decision.allowed
        True
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        """Initialize the limiter.

        Args:
            clock: Time source in seconds (defaults to ``time.time``)
        """
        self._clock = clock or time.time
        self._lock = asyncio.Lock()
        self._counters: dict[tuple[str, str, float], int] = {}

    @staticmethod
    def window_start(now: float, window_seconds: int) -> float:
        return (now // window_seconds) * window_seconds

    async def try_acquire(
        self,
        protocol: str,
        endpoint: str,
        limit: RateLimitConfig,
    ) -> RateDecision:
        """Count one call if the current window has budget left.

        Args:
            protocol: Protocol name
            endpoint: Endpoint name
            limit: Effective rate limit for the endpoint

        Returns:
            RateDecision; a denied call is not counted
        """
        seconds = WINDOW_SECONDS[limit.window]
        async with self._lock:
            now = self._clock()
            start = self.window_start(now, seconds)
            self._prune(protocol, endpoint, start)

            key = (protocol, endpoint, start)
            used = self._counters.get(key, 0)
            if used >= limit.requests:
                return RateDecision(
                    allowed=False,
                    remaining=0,
                    retry_after=max(start + seconds - now, 0.0),
                    window_start=start,
                )

            self._counters[key] = used + 1
            return RateDecision(
                allowed=True,
                remaining=limit.requests - used - 1,
                retry_after=0.0,
                window_start=start,
            )

    def _prune(self, protocol: str, endpoint: str, current_start: float) -> None:
        """Drop finished windows of one endpoint."""
        stale = [
            key
            for key in self._counters
            if key[0] == protocol and key[1] == endpoint and key[2] < current_start
        ]
        for key in stale:
            del self._counters[key]

    def usage(self, protocol: str, endpoint: str, limit: RateLimitConfig) -> int:
        """Calls counted in the current window."""
        start = self.window_start(self._clock(), WINDOW_SECONDS[limit.window])
        return self._counters.get((protocol, endpoint, start), 0)

    def reset(self, protocol: str | None = None) -> None:
        """Forget counters, for one protocol or all of them."""
        if protocol is None:
            self._counters.clear()
            return
        for key in [k for k in self._counters if k[0] == protocol]:
            del self._counters[key]

    def get_stats(self) -> dict[str, Any]:
        return {
            "tracked_windows": len(self._counters),
            "protocols": sorted({k[0] for k in self._counters}),
        }
