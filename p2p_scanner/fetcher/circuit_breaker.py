"""Circuit breaker implementation with explicit state management.

State transitions are pure functions of ``(state, event, now)``; the
``CircuitBreaker`` class only owns the per-key table and applies them.
"""

from dataclasses import replace
from typing import Dict, Optional

from p2p_scanner.fetcher.clock import Clock, WallClock
from p2p_scanner.models.data_models import (
    PROVENANCE_CIRCUIT_BREAKER,
    BreakerState,
    CacheKey,
    CircuitState,
    QuoteSet,
)


def is_open(state: Optional[BreakerState], now: float) -> bool:
    """True while the circuit suppresses network calls."""
    return state is not None and state.state is CircuitState.OPEN and now < state.open_until


def on_failure(
    state: Optional[BreakerState],
    now: float,
    cached: Optional[QuoteSet],
    failure_threshold: int,
    cooldown_seconds: float,
) -> BreakerState:
    """
    Apply a failed fetch.

    Args:
        state: Current state (None if the key never failed before)
        now: Failure time
        cached: Data the cache holds for the key, if any
        failure_threshold: Consecutive failures that open the circuit
        cooldown_seconds: How long the circuit stays open

    Returns:
        New state. Opens (or re-opens) the circuit once the count reaches
        the threshold.
    """
    state = state or BreakerState()
    failure_count = state.failure_count + 1
    last_good = cached if cached is not None else state.last_good_data

    if failure_count >= failure_threshold:
        return BreakerState(
            state=CircuitState.OPEN,
            failure_count=failure_count,
            last_failure_time=now,
            last_good_data=last_good,
            open_until=now + cooldown_seconds,
        )

    return replace(
        state,
        failure_count=failure_count,
        last_failure_time=now,
        last_good_data=last_good,
    )


def on_success(state: BreakerState, data: QuoteSet) -> BreakerState:
    """Any success closes the circuit immediately. There is no half-open trial request."""
    return BreakerState(
        state=CircuitState.CLOSED,
        failure_count=0,
        last_failure_time=0.0,
        last_good_data=data,
        open_until=0.0,
    )


class CircuitBreaker:
    """
    Per-key circuit breaker with CLOSED/OPEN states.

    - Opens after 5 consecutive failures
    - Stays open for 60 seconds, serving last-known-good data marked stale
    - Closes on the next success regardless of prior state
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        clock: Optional[Clock] = None,
        logger=None
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            cooldown_seconds: Time the circuit stays open
            clock: Clock interface for time management (defaults to WallClock)
            logger: Optional structured logger
        """
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock or WallClock()
        self.logger = logger
        self._circuits: Dict[CacheKey, BreakerState] = {}

    def get(self, key: CacheKey) -> Optional[BreakerState]:
        """Breaker state for key, or None if the key never failed."""
        return self._circuits.get(key)

    def is_open(self, key: CacheKey, now: Optional[float] = None) -> bool:
        now = self.clock.now() if now is None else now
        return is_open(self._circuits.get(key), now)

    def short_circuit(self, key: CacheKey, now: Optional[float] = None) -> Optional[QuoteSet]:
        """
        Fallback for a suppressed request.

        Only meaningful while ``is_open`` is true.

        Returns:
            Last good data tagged stale with provenance "circuit-breaker",
            or None when no success was ever recorded
        """
        circuit = self._circuits.get(key)
        if circuit is None or circuit.last_good_data is None:
            return None
        return replace(circuit.last_good_data, stale=True, source=PROVENANCE_CIRCUIT_BREAKER)

    def record_failure(
        self,
        key: CacheKey,
        cached: Optional[QuoteSet] = None,
        now: Optional[float] = None
    ) -> BreakerState:
        """
        Record failed fetch for key.

        Args:
            key: Cache key
            cached: Current cache content for key, kept as last good data
            now: Failure time (defaults to the breaker clock)
        """
        now = self.clock.now() if now is None else now
        previous = self._circuits.get(key)
        circuit = on_failure(
            previous,
            now,
            cached,
            self.failure_threshold,
            self.cooldown_seconds,
        )
        self._circuits[key] = circuit

        if self.logger and circuit.state is CircuitState.OPEN:
            self.logger.circuit_breaker_state(str(key), circuit.state.value, circuit.failure_count)
        return circuit

    def record_success(self, key: CacheKey, data: QuoteSet) -> Optional[BreakerState]:
        """
        Record successful fetch for key.

        State is created lazily on first failure, so keys that never failed
        stay absent from the table.
        """
        previous = self._circuits.get(key)
        if previous is None:
            return None

        circuit = on_success(previous, data)
        self._circuits[key] = circuit

        if self.logger and previous.state is CircuitState.OPEN:
            self.logger.circuit_breaker_state(str(key), circuit.state.value, 0)
        return circuit

    def state(self, key: CacheKey, now: Optional[float] = None) -> CircuitState:
        """
        Get current circuit state for key.

        An OPEN circuit whose cooldown has passed reports CLOSED: the next
        request goes to the network.
        """
        now = self.clock.now() if now is None else now
        if is_open(self._circuits.get(key), now):
            return CircuitState.OPEN
        return CircuitState.CLOSED

    def failure_count(self, key: CacheKey) -> int:
        circuit = self._circuits.get(key)
        return circuit.failure_count if circuit else 0

    def reset(self, key: CacheKey) -> None:
        """Reset circuit breaker for key (useful for testing)."""
        self._circuits.pop(key, None)
