"""
Geodesic helpers for WGS84 latitude/longitude tracks.
"""

import numpy as np
from numpy.typing import NDArray


EARTH_RADIUS_M = 6371000.0  # Earth's mean radius in meters


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate great-circle distance between points.

    Works on scalars or on equally shaped numpy arrays.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(np.subtract(lat2, lat1))
    dlon = np.radians(np.subtract(lon2, lon1))

    a = np.sin(dlat/2)**2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))

    return EARTH_RADIUS_M * c


def path_length(lat: NDArray[np.float64], lon: NDArray[np.float64]) -> float:
    """
    Total distance along a sequence of fixes, in meters.

    NaN fixes are dropped before the segments are measured.
    """
    lat = np.asarray(lat, dtype=np.float64)
    lon = np.asarray(lon, dtype=np.float64)
    valid = ~(np.isnan(lat) | np.isnan(lon))
    lat = lat[valid]
    lon = lon[valid]
    if len(lat) < 2:
        return 0.0

    segments = haversine_distance(lat[:-1], lon[:-1], lat[1:], lon[1:])
    return float(np.sum(segments))
