"""Core data models for the P2P quote scanner."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class Side(str, Enum):
    """Quote request direction, from the requester's perspective."""
    BUY = "buy"
    SELL = "sell"


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"


class SourceMode(str, Enum):
    """Provider priority mode."""
    AUTO = "auto"
    PRIMARY_ONLY = "primary-only"
    SECONDARY_ONLY = "secondary-only"


class AttemptStatus(Enum):
    """Outcome of one provider within a failover chain."""
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


# Provenance tags
SOURCE_OKX = "okx-api"
SOURCE_P2PARMY = "p2parmy"
PROVENANCE_RATE_LIMIT = "rate-limit"
PROVENANCE_CIRCUIT_BREAKER = "circuit-breaker"
PROVENANCE_ERROR_FALLBACK = "error-fallback"


@dataclass(frozen=True)
class Quote:
    """One merchant's priced, limited offer."""
    price: float
    min_limit: float
    max_limit: float
    available: float
    payment_methods: Tuple[str, ...]
    merchant_name: str
    merchant_orders: Optional[int] = None
    merchant_completion_rate: Optional[float] = None
    terms: str = ""


@dataclass(frozen=True)
class QuoteSet:
    """Normalized result of one fetch for one side."""
    side: Side
    fiat: str
    crypto: str
    items: Tuple[Quote, ...]
    ts: float  # epoch seconds
    stale: bool = False
    source: str = SOURCE_OKX


@dataclass(frozen=True)
class CacheKey:
    """Composite key; every distinct combination has independent state."""
    source: str
    side: Side
    fiat: str
    crypto: str
    limit: int

    def __str__(self) -> str:
        return f"{self.source}-{self.side.value}-{self.fiat}-{self.crypto}-{self.limit}"


@dataclass(frozen=True)
class CacheEntry:
    """Last good normalized result for a key."""
    data: QuoteSet
    timestamp: float


@dataclass(frozen=True)
class BreakerState:
    """Per-key circuit breaker state."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float = 0.0
    last_good_data: Optional[QuoteSet] = None
    open_until: float = 0.0


@dataclass(frozen=True)
class SummaryView:
    """Derived market summary for one fiat/crypto pair. Never cached."""
    fiat: str
    crypto: str
    best_buy_price: float
    best_sell_price: float
    mid: float
    spread_pct: float
    buy_top: Tuple[Quote, ...]
    sell_top: Tuple[Quote, ...]
    stale: bool
    ts: float


@dataclass(frozen=True)
class Snapshot:
    """Manually captured summary."""
    id: int
    captured_at: float
    summary: SummaryView


@dataclass
class SourceAttempt:
    """What happened to one provider during a failover pass."""
    source: str
    status: AttemptStatus


@dataclass
class FetchReport:
    """Per-request record of the failover chain."""
    side: Side
    attempts: List[SourceAttempt] = field(default_factory=list)

    def status_of(self, source: str) -> Optional[AttemptStatus]:
        for attempt in self.attempts:
            if attempt.source == source:
                return attempt.status
        return None

    @property
    def skipped(self) -> List[str]:
        return [a.source for a in self.attempts if a.status is AttemptStatus.SKIPPED]
