"""Clock interface for testable time management."""

import time
from typing import Protocol


class Clock(Protocol):
    """Clock interface for testable time management."""

    def now(self) -> float:
        """Return current time in seconds."""
        ...


class WallClock:
    """Default clock using epoch seconds, so QuoteSet timestamps are meaningful to clients."""

    def now(self) -> float:
        return time.time()
