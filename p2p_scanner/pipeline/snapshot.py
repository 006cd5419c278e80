"""Manual snapshot capture: only the latest snapshot per pair is retained."""

import itertools
import threading
from typing import Dict, Optional, Tuple

from p2p_scanner.models.data_models import Snapshot, SummaryView


class SnapshotStore:
    """
    Keeps the latest captured summary per (fiat, crypto) pair.

    Capturing again replaces the previous snapshot for that pair. Uses a
    lock so the API and CLI can share one store across threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Dict[Tuple[str, str], Snapshot] = {}
        self._ids = itertools.count(1)

    def capture(self, summary: SummaryView, captured_at: float) -> Snapshot:
        """
        Store summary as the latest snapshot for its pair.

        Args:
            summary: Summary to capture
            captured_at: Capture time in epoch seconds

        Returns:
            The stored snapshot
        """
        with self._lock:
            snapshot = Snapshot(id=next(self._ids), captured_at=captured_at, summary=summary)
            self._latest[(summary.fiat, summary.crypto)] = snapshot
            return snapshot

    def latest(self, fiat: str, crypto: str) -> Optional[Snapshot]:
        with self._lock:
            return self._latest.get((fiat, crypto))
