"""Unit tests for the resilient per-source fetch path."""

import asyncio
from typing import List
from unittest.mock import MagicMock

import pytest

from p2p_scanner.fetcher.cache import QuoteCache
from p2p_scanner.fetcher.circuit_breaker import CircuitBreaker
from p2p_scanner.fetcher.errors import HttpError, NetworkError, QuoteSourceError
from p2p_scanner.fetcher.quote_fetcher import KeyedLock, QuoteFetcher
from p2p_scanner.fetcher.rate_limiter import RateLimiter
from p2p_scanner.models.data_models import CacheKey, CircuitState, Side
from p2p_scanner.sources.base import QuoteSource
from tests.fixtures.sample_data import make_quote_set


class ScriptedSource(QuoteSource):
    """Source returning queued results; exceptions in the queue are raised."""

    name = "okx"

    def __init__(self, clock, outcomes: List = None):
        self.clock = clock
        self.outcomes = list(outcomes or [])
        self.calls = 0

    async def fetch(self, side, fiat, crypto, limit):
        self.calls += 1
        outcome = self.outcomes.pop(0) if self.outcomes else NetworkError("down")
        if isinstance(outcome, QuoteSourceError):
            raise outcome
        return make_quote_set(side, outcome, ts=self.clock.now(), fiat=fiat, crypto=crypto)


@pytest.fixture
def fetcher(clock, sleeper):
    return QuoteFetcher(
        QuoteCache(ttl_seconds=10.0),
        RateLimiter(min_interval=3.0, now=clock.now, sleeper=sleeper),
        CircuitBreaker(failure_threshold=5, cooldown_seconds=60.0, clock=clock),
        stale_cache_multiplier=3.0,
        clock=clock,
    )


async def fetch_buy(fetcher, source):
    return await fetcher.fetch(source, Side.BUY, "UAH", "USDT", 10)


BUY_KEY = CacheKey("okx", Side.BUY, "UAH", "USDT", 10)


class TestCacheHits:

    @pytest.mark.asyncio
    async def test_fresh_cache_avoids_second_call(self, fetcher, clock):
        source = ScriptedSource(clock, [[41.0, 41.1]])

        first = await fetch_buy(fetcher, source)
        clock.advance(5.0)
        second = await fetch_buy(fetcher, source)

        assert source.calls == 1
        assert second is first
        assert second.stale is False

    @pytest.mark.asyncio
    async def test_fresh_cache_wins_inside_rate_limit_window(self, fetcher, clock, sleeper):
        source = ScriptedSource(clock, [[41.0]])

        first = await fetch_buy(fetcher, source)
        clock.advance(1.0)
        second = await fetch_buy(fetcher, source)

        assert source.calls == 1
        assert second is first
        assert second.stale is False
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, fetcher, clock):
        source = ScriptedSource(clock, [[41.0], [42.0]])

        await fetch_buy(fetcher, source)
        clock.advance(10.0)
        second = await fetch_buy(fetcher, source)

        assert source.calls == 2
        assert second.items[0].price == 42.0
        assert second.stale is False

    @pytest.mark.asyncio
    async def test_distinct_keys_do_not_share_cache(self, fetcher, clock):
        source = ScriptedSource(clock, [[41.0], [42.0]])

        await fetcher.fetch(source, Side.BUY, "UAH", "USDT", 10)
        await fetcher.fetch(source, Side.BUY, "UAH", "USDT", 20)

        assert source.calls == 2


class TestRateLimiting:

    @pytest.mark.asyncio
    async def test_rate_limited_request_serves_recent_expired_cache(self, fetcher, clock, sleeper):
        source = ScriptedSource(clock, [[41.0]])
        await fetch_buy(fetcher, source)

        # Cache expires and the next attempt fails, recording a fresh attempt time
        clock.advance(12.0)
        source.outcomes = [NetworkError("down")]
        await fetch_buy(fetcher, source)

        clock.advance(1.0)
        result = await fetch_buy(fetcher, source)

        assert source.calls == 2
        assert result.stale is True
        assert result.source == "rate-limit"
        assert result.items[0].price == 41.0
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_rate_limited_request_without_cache_waits(self, fetcher, clock, sleeper):
        source = ScriptedSource(clock, [NetworkError("down"), [41.0]])
        assert await fetch_buy(fetcher, source) is None

        clock.advance(1.0)
        result = await fetch_buy(fetcher, source)

        assert sleeper.calls == [pytest.approx(2.0)]
        assert source.calls == 2
        assert result.stale is False
        assert result.source == "okx-api"

    @pytest.mark.asyncio
    async def test_cache_older_than_stale_window_is_not_served(self, fetcher, clock, sleeper):
        source = ScriptedSource(clock, [[41.0]])
        await fetch_buy(fetcher, source)

        clock.advance(40.0)
        source.outcomes = [NetworkError("down"), [43.0]]
        await fetch_buy(fetcher, source)

        clock.advance(1.0)
        result = await fetch_buy(fetcher, source)

        assert len(sleeper.calls) == 1
        assert result.items[0].price == 43.0


class TestCircuitBreaking:

    @pytest.mark.asyncio
    async def test_open_circuit_without_history_returns_none_without_network(self, fetcher, clock):
        source = ScriptedSource(clock)

        for _ in range(5):
            assert await fetch_buy(fetcher, source) is None
            clock.advance(3.0)

        assert fetcher.circuit_breaker.state(BUY_KEY) == CircuitState.OPEN

        assert await fetch_buy(fetcher, source) is None
        assert source.calls == 5

    @pytest.mark.asyncio
    async def test_failures_degrade_to_last_good_data(self, fetcher, clock):
        source = ScriptedSource(clock, [[41.0]])
        good = await fetch_buy(fetcher, source)
        clock.advance(11.0)

        fallbacks = []
        for _ in range(5):
            fallbacks.append(await fetch_buy(fetcher, source))
            clock.advance(3.0)

        assert all(f.stale for f in fallbacks)
        assert {f.source for f in fallbacks} == {"error-fallback"}
        assert fallbacks[0].items == good.items

        suppressed = await fetch_buy(fetcher, source)
        assert source.calls == 6
        assert suppressed.stale is True
        assert suppressed.source == "circuit-breaker"
        assert suppressed.items == good.items

    @pytest.mark.asyncio
    async def test_success_after_cooldown_closes_circuit(self, fetcher, clock):
        source = ScriptedSource(clock, [NetworkError("down")] * 5 + [[44.0]])
        for _ in range(5):
            await fetch_buy(fetcher, source)
            clock.advance(3.0)

        clock.advance(60.0)
        result = await fetch_buy(fetcher, source)

        assert result.items[0].price == 44.0
        assert result.stale is False
        assert fetcher.circuit_breaker.state(BUY_KEY) == CircuitState.CLOSED
        assert fetcher.circuit_breaker.failure_count(BUY_KEY) == 0

    @pytest.mark.asyncio
    async def test_short_circuit_is_logged_as_breaker_event(self, fetcher, clock):
        fetcher.logger = MagicMock()
        source = ScriptedSource(clock)
        for _ in range(5):
            await fetch_buy(fetcher, source)
            clock.advance(3.0)

        await fetch_buy(fetcher, source)

        fetcher.logger.circuit_short_circuit.assert_called_once_with(str(BUY_KEY), served_fallback=False)
        fetcher.logger.cache_hit.assert_not_called()

    @pytest.mark.asyncio
    async def test_any_source_error_counts_as_failure(self, fetcher, clock):
        source = ScriptedSource(clock, [HttpError(500), NetworkError("timeout")])

        await fetch_buy(fetcher, source)
        clock.advance(3.0)
        await fetch_buy(fetcher, source)

        assert fetcher.circuit_breaker.failure_count(BUY_KEY) == 2


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_requests_for_same_key_fetch_once(self, fetcher, clock):
        release = asyncio.Event()

        class SlowSource(ScriptedSource):
            async def fetch(self, side, fiat, crypto, limit):
                await release.wait()
                return await super().fetch(side, fiat, crypto, limit)

        source = SlowSource(clock, [[41.0]])
        tasks = [asyncio.ensure_future(fetch_buy(fetcher, source)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert source.calls == 1
        assert results[0] is results[1] is results[2]

    @pytest.mark.asyncio
    async def test_keyed_lock_is_per_key(self):
        locks = KeyedLock()
        other = CacheKey("okx", Side.SELL, "UAH", "USDT", 10)

        async with locks.hold(BUY_KEY):
            assert locks.locked(BUY_KEY)
            assert not locks.locked(other)
            async with locks.hold(other):
                assert locks.locked(other)

        assert not locks.locked(BUY_KEY)
