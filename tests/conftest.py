"""Pytest configuration and shared fixtures."""

from typing import Callable, List

import httpx
import pytest

from p2p_scanner.fetcher.http_client import AsyncHTTPClient
from p2p_scanner.models.config import ScannerConfig
from p2p_scanner.monitoring.logger import StructuredLogger
from p2p_scanner.pipeline.orchestrator import QuoteService


class FakeClock:
    """Fake clock for testing."""

    def __init__(self, initial_time: float = 1_700_000_000.0):
        self._current_time = initial_time

    def now(self) -> float:
        return self._current_time

    def advance(self, seconds: float) -> None:
        self._current_time += seconds


class FakeSleeper:
    """Async sleep replacement that records waits and advances a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return FakeSleeper(clock)


@pytest.fixture
def sample_config():
    """Provide a sample configuration for testing."""
    return ScannerConfig(
        okx_base_urls=["https://mirror1.test", "https://mirror2.test"],
        p2parmy_base_url="https://army.test/v1/api",
        p2parmy_api_key=None,
        cache_ttl=10.0,
        min_fetch_interval=3.0,
        breaker_failure_threshold=5,
        breaker_cooldown=60.0,
        request_timeout=10.0,
        log_level="WARNING",
    )


@pytest.fixture
def quiet_logger():
    return StructuredLogger(name="p2p_scanner.tests", level="CRITICAL")


@pytest.fixture
def make_service(sample_config, clock, sleeper, quiet_logger) -> Callable[..., QuoteService]:
    """Build a QuoteService whose HTTP traffic goes to ``handler``."""

    def factory(handler, config: ScannerConfig = None) -> QuoteService:
        http_client = AsyncHTTPClient(
            request_timeout=(config or sample_config).request_timeout,
            transport=httpx.MockTransport(handler),
        )
        return QuoteService(
            config or sample_config,
            http_client=http_client,
            clock=clock,
            sleeper=sleeper,
            logger=quiet_logger,
        )

    return factory
