"""
Stream fuser: merges location and motion readings into one record stream.

Records are appended in the order the readings arrive, not sorted by
capture time. A motion record carries the most recent location seen
before it (or none), never one that arrived later.

The buffer is unbounded between flushes. The flush cadence keeps it small
in practice; capping it would drop data.
"""

import logging
import threading
from typing import Optional

from ridelog.models.records import FusedRecord, LocationReading, MotionSample


logger = logging.getLogger(__name__)


class StreamFuser:
    """Owns the fused-record buffer of one recording."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buffer: list[FusedRecord] = []
        self._last_location: Optional[LocationReading] = None

    @property
    def last_known_location(self) -> Optional[LocationReading]:
        return self._last_location

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    def on_location(self, reading: LocationReading) -> None:
        record = FusedRecord(captured_at=reading.captured_at, location=reading)
        with self._lock:
            self._last_location = reading
            self._buffer.append(record)

    def on_motion(self, sample: MotionSample) -> None:
        reading = sample.to_reading()
        with self._lock:
            record = FusedRecord(
                captured_at=sample.captured_at,
                location=self._last_location,
                total_accel=reading.magnitude,
            )
            self._buffer.append(record)

    def snapshot(self) -> list[FusedRecord]:
        """Copy of the buffered records; the buffer itself is untouched."""
        with self._lock:
            return list(self._buffer)

    def commit(self, count: int) -> None:
        """
        Drop the first ``count`` records once they were handed to the connection.

        Records appended after the snapshot stay buffered.
        """
        with self._lock:
            if count > len(self._buffer):
                raise ValueError(f"Cannot commit {count} records, only {len(self._buffer)} buffered")
            del self._buffer[:count]
