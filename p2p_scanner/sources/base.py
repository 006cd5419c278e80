"""Source adapter interface."""

from abc import ABC, abstractmethod

from p2p_scanner.models.data_models import QuoteSet, Side


class QuoteSource(ABC):
    """
    One upstream provider.

    ``fetch`` performs the network call and returns a fresh QuoteSet, or
    raises a ``QuoteSourceError`` subclass. Adapters hold no cache, breaker
    or rate-limit state; the fetch path owns that.
    """

    #: Source identifier used in cache keys and reports
    name: str = ""

    @property
    def available(self) -> bool:
        """False when the source is structurally unusable (e.g. missing credential)."""
        return True

    @abstractmethod
    async def fetch(self, side: Side, fiat: str, crypto: str, limit: int) -> QuoteSet:
        """Fetch and normalize at most ``limit`` quotes."""
