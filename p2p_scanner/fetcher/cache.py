"""Short-TTL store of the last good QuoteSet per cache key."""

from typing import Dict, Optional

from p2p_scanner.models.data_models import CacheEntry, CacheKey, QuoteSet


class QuoteCache:
    """
    Per-key cache of normalized results.

    Entries are replaced wholesale on refresh. Expired entries stay readable
    through ``get`` so the circuit breaker and rate limiter can fall back to
    them, but ``get_fresh`` only ever returns entries inside the TTL.
    """

    def __init__(self, ttl_seconds: float = 10.0):
        """
        Initialize cache.

        Args:
            ttl_seconds: Age under which an entry counts as fresh
        """
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Return the entry for key regardless of age."""
        return self._entries.get(key)

    def put(self, key: CacheKey, data: QuoteSet, timestamp: Optional[float] = None) -> CacheEntry:
        """
        Store data as the latest entry for key.

        Args:
            key: Cache key
            data: Normalized result
            timestamp: Entry time (defaults to the QuoteSet fetch time)

        Returns:
            The new entry
        """
        entry = CacheEntry(data=data, timestamp=data.ts if timestamp is None else timestamp)
        self._entries[key] = entry
        return entry

    def is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp < self.ttl_seconds

    def get_fresh(self, key: CacheKey, now: float) -> Optional[QuoteSet]:
        """Return cached data only while it is inside the TTL."""
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry, now):
            return entry.data
        return None

    def get_within(self, key: CacheKey, now: float, max_age: float) -> Optional[QuoteSet]:
        """Return cached data no older than max_age seconds."""
        entry = self._entries.get(key)
        if entry is not None and now - entry.timestamp < max_age:
            return entry.data
        return None

    def __len__(self) -> int:
        return len(self._entries)
