"""Per-source fetch path: circuit breaker, rate limiter, cache, then network."""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Dict, Optional

from p2p_scanner.fetcher.cache import QuoteCache
from p2p_scanner.fetcher.circuit_breaker import CircuitBreaker
from p2p_scanner.fetcher.clock import Clock, WallClock
from p2p_scanner.fetcher.errors import HttpError, QuoteSourceError
from p2p_scanner.fetcher.rate_limiter import RateLimiter
from p2p_scanner.models.data_models import (
    PROVENANCE_ERROR_FALLBACK,
    PROVENANCE_RATE_LIMIT,
    CacheKey,
    QuoteSet,
    Side,
)
from p2p_scanner.sources.base import QuoteSource


class KeyedLock:
    """One asyncio.Lock per key; different keys never contend."""

    def __init__(self):
        self._locks: Dict[CacheKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, key: CacheKey) -> AsyncIterator[None]:
        async with self._locks[key]:
            yield

    def locked(self, key: CacheKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


class QuoteFetcher:
    """
    Resilient fetch path shared by every source.

    Responsibilities:
    - Short-circuit while the key's circuit is open
    - Enforce the minimum fetch interval, preferring degraded cache over waiting
    - Serve fresh cache hits without touching the network
    - Fold every source failure into breaker accounting and degrade to
      last-known-good data

    The whole read-decide-write sequence for one key runs under that key's
    lock, so concurrent requests for the same key cannot lose updates.
    Source errors never escape ``fetch``; callers only see a QuoteSet or None.
    """

    def __init__(
        self,
        cache: QuoteCache,
        rate_limiter: RateLimiter,
        circuit_breaker: CircuitBreaker,
        stale_cache_multiplier: float = 3.0,
        clock: Optional[Clock] = None,
        logger=None
    ):
        """
        Initialize fetch path with resilience components.

        Args:
            cache: Per-key QuoteSet cache
            rate_limiter: Minimum-interval limiter
            circuit_breaker: Per-key breaker
            stale_cache_multiplier: Rate-limited requests accept cache up to ttl * multiplier old
            clock: Clock interface (defaults to WallClock)
            logger: Optional structured logger for telemetry
        """
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.circuit_breaker = circuit_breaker
        self.stale_cache_multiplier = stale_cache_multiplier
        self.clock = clock or WallClock()
        self.logger = logger
        self._locks = KeyedLock()

    async def fetch(
        self,
        source: QuoteSource,
        side: Side,
        fiat: str,
        crypto: str,
        limit: int
    ) -> Optional[QuoteSet]:
        """
        Fetch quotes for one source through breaker, limiter and cache.

        Returns:
            Fresh QuoteSet, degraded QuoteSet (stale=True with provenance
            "circuit-breaker", "rate-limit" or "error-fallback"), or None
        """
        key = CacheKey(source=source.name, side=side, fiat=fiat, crypto=crypto, limit=limit)

        async with self._locks.hold(key):
            return await self._fetch_locked(key, source)

    async def _fetch_locked(self, key: CacheKey, source: QuoteSource) -> Optional[QuoteSet]:
        now = self.clock.now()

        # Circuit breaker
        if self.circuit_breaker.is_open(key, now):
            fallback = self.circuit_breaker.short_circuit(key, now)
            if self.logger:
                self.logger.circuit_short_circuit(str(key), served_fallback=fallback is not None)
            return fallback

        # Rate limiter
        wait = self.rate_limiter.should_delay(key, now)
        if wait > 0:
            served = self._serve_rate_limited(key, now)
            if self.logger:
                self.logger.rate_limited(str(key), wait_ms=wait * 1000, served_cache=served is not None)
            if served is not None:
                return served
            await self.rate_limiter.wait(wait)
            now = self.clock.now()

        # Cache
        cached = self.cache.get_fresh(key, now)
        if cached is not None:
            if self.logger:
                self.logger.cache_hit(str(key))
            return cached

        # Network
        return await self._fetch_network(key, source, now)

    def _serve_rate_limited(self, key: CacheKey, now: float) -> Optional[QuoteSet]:
        """Cache answer for a request inside the minimum interval, if any."""
        fresh = self.cache.get_fresh(key, now)
        if fresh is not None:
            return fresh

        max_age = self.cache.ttl_seconds * self.stale_cache_multiplier
        degraded = self.cache.get_within(key, now, max_age)
        if degraded is None:
            return None
        return replace(degraded, stale=True, source=PROVENANCE_RATE_LIMIT)

    async def _fetch_network(self, key: CacheKey, source: QuoteSource, now: float) -> Optional[QuoteSet]:
        self.rate_limiter.record_attempt(key, now)

        if self.logger:
            self.logger.fetch_start(source=source.name, key=str(key))

        start = time.monotonic()
        try:
            result = await source.fetch(key.side, key.fiat, key.crypto, key.limit)
        except QuoteSourceError as e:
            return self._handle_failure(key, source, e)

        self.cache.put(key, result, timestamp=now)
        self.circuit_breaker.record_success(key, result)

        if self.logger:
            self.logger.fetch_success(
                source=source.name,
                key=str(key),
                items=len(result.items),
                elapsed_ms=(time.monotonic() - start) * 1000
            )
        return result

    def _handle_failure(self, key: CacheKey, source: QuoteSource, error: QuoteSourceError) -> Optional[QuoteSet]:
        failed_at = self.clock.now()

        if self.logger:
            self.logger.fetch_error(
                source=source.name,
                key=str(key),
                error=f"{type(error).__name__}: {error}",
                status=error.status_code if isinstance(error, HttpError) else None
            )

        entry = self.cache.get(key)
        circuit = self.circuit_breaker.record_failure(
            key,
            cached=entry.data if entry else None,
            now=failed_at
        )

        if circuit.last_good_data is None:
            return None
        return replace(circuit.last_good_data, stale=True, source=PROVENANCE_ERROR_FALLBACK)
