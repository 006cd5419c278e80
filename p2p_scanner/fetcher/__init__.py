"""Quote acquisition primitives: cache, rate limiting and circuit breaking per key."""

from .cache import QuoteCache
from .circuit_breaker import CircuitBreaker
from .rate_limiter import RateLimiter

__all__ = ["CircuitBreaker", "QuoteCache", "RateLimiter"]
