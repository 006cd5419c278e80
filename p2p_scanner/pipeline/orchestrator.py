"""Source orchestrator: ordered failover across quote providers."""

import asyncio
from typing import List, Optional, Tuple

from p2p_scanner.fetcher.cache import QuoteCache
from p2p_scanner.fetcher.circuit_breaker import CircuitBreaker
from p2p_scanner.fetcher.clock import Clock, WallClock
from p2p_scanner.fetcher.http_client import AsyncHTTPClient
from p2p_scanner.fetcher.quote_fetcher import QuoteFetcher
from p2p_scanner.fetcher.rate_limiter import RateLimiter
from p2p_scanner.models.config import ScannerConfig
from p2p_scanner.models.data_models import (
    AttemptStatus,
    FetchReport,
    QuoteSet,
    Side,
    SourceAttempt,
    SourceMode,
    SummaryView,
)
from p2p_scanner.monitoring.logger import StructuredLogger
from p2p_scanner.processor.summary import build_summary
from p2p_scanner.sources import OKXSource, P2PArmySource, QuoteSource


def order_sources(mode: SourceMode, primary: QuoteSource, secondary: QuoteSource) -> List[QuoteSource]:
    """Provider priority for a mode."""
    if mode is SourceMode.PRIMARY_ONLY:
        return [primary]
    if mode is SourceMode.SECONDARY_ONLY:
        return [secondary]
    return [primary, secondary]


class SourceOrchestrator:
    """
    Tries sources in priority order and returns the first usable result.

    Pure failover: results from different providers are never merged.
    Unavailable sources are skipped without any network I/O.
    """

    def __init__(
        self,
        sources: List[QuoteSource],
        fetcher: QuoteFetcher,
        logger: Optional[StructuredLogger] = None
    ):
        self.sources = list(sources)
        self.fetcher = fetcher
        self.logger = logger

    async def fetch_with_report(
        self,
        side: Side,
        fiat: str,
        crypto: str,
        limit: int
    ) -> Tuple[Optional[QuoteSet], FetchReport]:
        """
        Run the failover chain for one side.

        Returns:
            (first non-null result or None, report of every source's outcome)
        """
        report = FetchReport(side=side)

        for source in self.sources:
            if not source.available:
                report.attempts.append(SourceAttempt(source.name, AttemptStatus.SKIPPED))
                if self.logger:
                    self.logger.source_skipped(source=source.name, reason="unavailable")
                continue

            result = await self.fetcher.fetch(source, side, fiat, crypto, limit)
            if result is not None:
                report.attempts.append(SourceAttempt(source.name, AttemptStatus.OK))
                return result, report

            report.attempts.append(SourceAttempt(source.name, AttemptStatus.FAILED))

        return None, report

    async def fetch_from_sources(
        self,
        side: Side,
        fiat: str,
        crypto: str,
        limit: int
    ) -> Optional[QuoteSet]:
        """First non-null QuoteSet across configured sources, else None."""
        result, _ = await self.fetch_with_report(side, fiat, crypto, limit)
        return result

    async def fetch_summary(
        self,
        fiat: str,
        crypto: str,
        limit: int,
        top_n: Optional[int] = None
    ) -> Optional[SummaryView]:
        """
        Fetch both sides concurrently and assemble a summary.

        Returns:
            SummaryView stamped with assembly time, or None if either side
            produced no data
        """
        buy, sell = await asyncio.gather(
            self.fetch_from_sources(Side.BUY, fiat, crypto, limit),
            self.fetch_from_sources(Side.SELL, fiat, crypto, limit),
        )

        summary = build_summary(buy, sell, top_n=top_n, ts=self.fetcher.clock.now())
        if self.logger and summary is not None:
            self.logger.log(
                "summary_built",
                fiat=fiat,
                crypto=crypto,
                spread_pct=round(summary.spread_pct, 4),
                stale=summary.stale
            )
        return summary


class QuoteService:
    """
    Wires configuration, HTTP client and resilience components together.

    Owns the process-wide cache, breaker and limiter tables, so one instance
    should live for the lifetime of the process.
    """

    def __init__(
        self,
        config: ScannerConfig,
        http_client: Optional[AsyncHTTPClient] = None,
        clock: Optional[Clock] = None,
        sleeper=asyncio.sleep,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize service with scanner configuration.

        Args:
            config: Scanner configuration object
            http_client: HTTP client (built from config when omitted)
            clock: Clock interface (defaults to WallClock)
            sleeper: Async sleep used by the rate limiter
            logger: Structured logger (built from config when omitted)
        """
        self.config = config
        self.clock = clock or WallClock()
        self.logger = logger or StructuredLogger(level=config.log_level)
        self.http_client = http_client or AsyncHTTPClient(
            request_timeout=config.request_timeout,
            connect_timeout=config.connect_timeout
        )

        self.cache = QuoteCache(ttl_seconds=config.cache_ttl)
        self.rate_limiter = RateLimiter(
            min_interval=config.min_fetch_interval,
            now=self.clock.now,
            sleeper=sleeper
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=config.breaker_failure_threshold,
            cooldown_seconds=config.breaker_cooldown,
            clock=self.clock,
            logger=self.logger
        )
        self.fetcher = QuoteFetcher(
            self.cache,
            self.rate_limiter,
            self.circuit_breaker,
            stale_cache_multiplier=config.stale_cache_multiplier,
            clock=self.clock,
            logger=self.logger
        )

        self.primary = OKXSource(
            self.http_client,
            config.okx_base_urls,
            amount=config.okx_amount,
            clock=self.clock,
            logger=self.logger
        )
        self.secondary = P2PArmySource(
            self.http_client,
            config.p2parmy_base_url,
            api_key=config.p2parmy_api_key,
            clock=self.clock
        )
        self.orchestrator = SourceOrchestrator(
            order_sources(config.source_mode, self.primary, self.secondary),
            self.fetcher,
            logger=self.logger
        )

    async def __aenter__(self):
        await self.http_client.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http_client.close()

    @property
    def sources(self) -> List[QuoteSource]:
        return [self.primary, self.secondary]

    def fallback_hint(self) -> Optional[str]:
        """Actionable hint for the no-data response."""
        if self.config.secondary_configured:
            return None
        return "Set P2P_ARMY_API_KEY to enable fallback data source"

    async def fetch_quotes(
        self,
        side: Side,
        fiat: str,
        crypto: str,
        limit: int
    ) -> Tuple[Optional[QuoteSet], FetchReport]:
        return await self.orchestrator.fetch_with_report(side, fiat, crypto, limit)

    async def fetch_summary(self, fiat: str, crypto: str, limit: int) -> Optional[SummaryView]:
        return await self.orchestrator.fetch_summary(fiat, crypto, limit, top_n=limit)
