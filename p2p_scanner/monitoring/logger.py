"""Structured logging for quote acquisition monitoring."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "p2p_scanner", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, source, key, status, error, elapsed_ms,
                      cb_state, failures, wait_ms, items
        """
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, default=str))

    def fetch_start(self, source: str, key: str) -> None:
        self.log("fetch_start", level=logging.DEBUG, source=source, key=key)

    def fetch_success(self, source: str, key: str, items: int, elapsed_ms: float) -> None:
        self.log("fetch_success", source=source, key=key, items=items, elapsed_ms=round(elapsed_ms, 1))

    def fetch_error(self, source: str, key: str, error: str, status: Optional[int] = None) -> None:
        self.log("fetch_error", level=logging.ERROR, source=source, key=key, status=status, error=error)

    def mirror_error(self, source: str, url: str, error: str) -> None:
        self.log("mirror_error", level=logging.WARNING, source=source, url=url, error=error)

    def circuit_breaker_state(self, key: str, state: str, failures: int) -> None:
        self.log("circuit_breaker", level=logging.WARNING, key=key, cb_state=state, failures=failures)

    def circuit_short_circuit(self, key: str, served_fallback: bool) -> None:
        self.log("circuit_short_circuit", key=key, cb_state="open", served_fallback=served_fallback)

    def cache_hit(self, key: str, provenance: Optional[str] = None) -> None:
        self.log("cache_hit", level=logging.DEBUG, key=key, provenance=provenance)

    def rate_limited(self, key: str, wait_ms: float, served_cache: bool) -> None:
        self.log("rate_limited", key=key, wait_ms=round(wait_ms, 1), served_cache=served_cache)

    def source_skipped(self, source: str, reason: str) -> None:
        self.log("source_skipped", level=logging.DEBUG, source=source, reason=reason)
