"""Failure taxonomy for upstream quote sources."""

from typing import Any, Optional


class QuoteSourceError(Exception):
    """Base class for every recoverable source failure."""


class NetworkError(QuoteSourceError):
    """Connection failure or timeout."""


class HttpError(QuoteSourceError):
    """Non-2xx HTTP response."""

    def __init__(self, status_code: int, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code}")


class UpstreamError(QuoteSourceError):
    """Application-level error code inside an otherwise successful response."""

    def __init__(self, code: Any, message: str = ""):
        self.code = code
        detail = f"upstream error {code}"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)


class InvalidFormat(QuoteSourceError):
    """Response body has no recognizable item list."""


class Unavailable(QuoteSourceError):
    """Source is not configured and never attempts network I/O."""
