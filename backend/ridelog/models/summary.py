"""
Ride summary statistics model.
"""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class RideSummary:
    """Summary of one ride, derived from its fused records."""

    record_count: int
    location_count: int
    count: int  # records carrying total_accel
    mean: Optional[float]
    max: Optional[float]
    min: Optional[float]
    duration: float  # last minus first captured_at, same unit as the timestamps
    distance_m: float

    def to_dict(self) -> dict:
        return asdict(self)
