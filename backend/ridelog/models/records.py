"""
Ride data model.

Raw sensor readings, the fused record stream built from them, and the
server-side session that accumulates fused records until it is finalized.

Timestamps are plain numbers (milliseconds since the epoch on devices,
any monotonic unit in tests); they are never reinterpreted.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class LocationReading:
    """A single geolocation fix."""

    latitude: float
    longitude: float
    captured_at: Optional[float] = None

    def to_dict(self) -> dict:
        result = {"latitude": self.latitude, "longitude": self.longitude}
        if self.captured_at is not None:
            result["capturedAt"] = self.captured_at
        return result


@dataclass(frozen=True)
class MotionSample:
    """Raw 3-axis accelerometer sample."""

    x: float
    y: float
    z: float
    captured_at: float

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    def to_reading(self) -> "MotionReading":
        return MotionReading(magnitude=self.magnitude, captured_at=self.captured_at)


@dataclass(frozen=True)
class MotionReading:
    """Accelerometer magnitude (Euclidean norm of the three axes)."""

    magnitude: float
    captured_at: float

    def __post_init__(self):
        if self.magnitude < 0:
            raise ValueError(f"Motion magnitude must be non-negative: {self.magnitude}")


@dataclass(frozen=True)
class FusedRecord:
    """
    One entry of the merged stream.

    A record with only ``location`` is a pure location update. A record with
    ``total_accel`` carries the last location known when it was captured,
    which may be older than ``captured_at``.
    """

    captured_at: float
    location: Optional[LocationReading] = None
    total_accel: Optional[float] = None

    def __post_init__(self):
        if self.location is None and self.total_accel is None:
            raise ValueError("FusedRecord needs a location or a total_accel value")

    @property
    def has_motion(self) -> bool:
        return self.total_accel is not None

    def to_dict(self) -> dict:
        return {
            "capturedAt": self.captured_at,
            "location": self.location.to_dict() if self.location is not None else None,
            "totalAccel": self.total_accel,
        }


class SessionStatus(Enum):
    """Lifecycle state of a server-side session."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Session:
    """Records accumulated for one ride on the service."""

    index: int
    records: list[FusedRecord] = field(default_factory=list)
    status: SessionStatus = SessionStatus.OPEN

    @property
    def record_count(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records


@dataclass(frozen=True)
class ExportArtifact:
    """A CSV export written for one closed session."""

    session_index: int
    path: Path
    row_count: int

    @property
    def external_index(self) -> int:
        return self.session_index + 1
