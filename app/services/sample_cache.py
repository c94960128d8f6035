# ============================================================
# File: sample_cache.py - Latest sample cache
# ============================================================
# Holds the most recent PLCData for the API and the sink.
# One writer (the poller), many readers (HTTP handlers).
# ============================================================

import threading
from datetime import datetime, timezone
from typing import Optional, Tuple

from app.plc.parser_plc_data import PLCData


class SampleCache:
    """Latest-sample slot

    Each write stores a new immutable (record, timestamp) tuple under the
    writer lock. Readers never take the lock: fetching the tuple reference
    is atomic, so a read sees one whole snapshot and never blocks another
    reader.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Optional[Tuple[PLCData, datetime]] = None
        self._write_count = 0

    def write(self, record: PLCData, timestamp: Optional[datetime] = None) -> None:
        """Replace the stored sample"""
        snapshot = (record, timestamp or datetime.now(timezone.utc))
        with self._lock:
            self._snapshot = snapshot
            self._write_count += 1

    def read(self) -> Optional[PLCData]:
        """Latest record, or None when nothing has been written yet"""
        snapshot = self._snapshot
        return snapshot[0] if snapshot else None

    def read_snapshot(self) -> Optional[Tuple[PLCData, datetime]]:
        """Latest (record, timestamp) pair, or None"""
        return self._snapshot

    @property
    def has_value(self) -> bool:
        return self._snapshot is not None

    @property
    def write_count(self) -> int:
        with self._lock:
            return self._write_count
