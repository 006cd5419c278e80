"""Minimum-interval rate limiter keyed by cache key."""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Hashable, Optional


class RateLimiter:
    """Enforces a minimum spacing between network fetches per key.

    Only attempts that actually reach the network are recorded; cache hits
    never move the window. The limiter itself never decides what to serve:
    ``should_delay`` reports the remaining wait and the caller chooses between
    a stale cache answer and ``wait``.
    """

    def __init__(
        self,
        min_interval: float = 3.0,
        now: Callable[[], float] = time.time,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between network attempts per key
            now: Clock function (default: time.time)
            sleeper: Async sleep function (default: asyncio.sleep)
        """
        self.min_interval = min_interval
        self._now = now
        self._sleep = sleeper

        # {key: last attempt time}
        self._last_attempt: Dict[Hashable, float] = {}

    def should_delay(self, key: Hashable, now: Optional[float] = None) -> float:
        """Return how many seconds the caller must wait before fetching key.

        Args:
            key: Cache key
            now: Decision time (defaults to the limiter clock)

        Returns:
            0.0 when a fetch may proceed immediately, else the remaining wait
        """
        if now is None:
            now = self._now()

        last = self._last_attempt.get(key)
        if last is None:
            return 0.0

        elapsed = now - last
        if elapsed >= self.min_interval:
            return 0.0
        return self.min_interval - elapsed

    def record_attempt(self, key: Hashable, now: Optional[float] = None) -> None:
        """Mark that a network attempt for key starts now."""
        self._last_attempt[key] = self._now() if now is None else now

    async def wait(self, seconds: float) -> None:
        """Block until the interval elapses."""
        if seconds > 0:
            await self._sleep(seconds)
