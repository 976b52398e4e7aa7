"""
Summary statistics for a ride.

Works on column arrays so the same code summarizes a live session and a
ride re-read from its CSV export.
"""

from typing import Iterable

import numpy as np
from numpy.typing import NDArray

from ridelog.models.records import FusedRecord
from ridelog.models.summary import RideSummary
from ridelog.utils.geo import path_length


def records_to_columns(records: Iterable[FusedRecord]) -> dict[str, NDArray[np.float64]]:
    """Split fused records into float columns, NaN where a field is absent."""
    timestamps, lat, lon, accel = [], [], [], []
    for record in records:
        timestamps.append(record.captured_at)
        if record.location is not None:
            lat.append(record.location.latitude)
            lon.append(record.location.longitude)
        else:
            lat.append(np.nan)
            lon.append(np.nan)
        accel.append(record.total_accel if record.total_accel is not None else np.nan)

    return {
        "timestamp": np.asarray(timestamps, dtype=np.float64),
        "latitude": np.asarray(lat, dtype=np.float64),
        "longitude": np.asarray(lon, dtype=np.float64),
        "total_accel": np.asarray(accel, dtype=np.float64),
    }


def summarize_columns(
    timestamps: NDArray[np.float64],
    latitude: NDArray[np.float64],
    longitude: NDArray[np.float64],
    total_accel: NDArray[np.float64],
) -> RideSummary:
    """
    Compute count, mean, max and min of total acceleration, plus ride extent.

    Distance is measured over pure location updates only; motion rows
    repeat a carried-forward fix and would add zero-length segments.
    """
    has_accel = ~np.isnan(total_accel)
    has_location = ~(np.isnan(latitude) | np.isnan(longitude))
    location_only = has_location & ~has_accel

    accel = total_accel[has_accel]
    count = int(accel.size)

    valid_times = timestamps[~np.isnan(timestamps)]
    duration = float(np.max(valid_times) - np.min(valid_times)) if valid_times.size else 0.0

    return RideSummary(
        record_count=int(len(timestamps)),
        location_count=int(np.count_nonzero(location_only)),
        count=count,
        mean=float(np.mean(accel)) if count else None,
        max=float(np.max(accel)) if count else None,
        min=float(np.min(accel)) if count else None,
        duration=duration,
        distance_m=path_length(latitude[location_only], longitude[location_only]),
    )


def summarize_records(records: Iterable[FusedRecord]) -> RideSummary:
    """Summarize a sequence of fused records."""
    columns = records_to_columns(records)
    return summarize_columns(
        columns["timestamp"],
        columns["latitude"],
        columns["longitude"],
        columns["total_accel"],
    )
