"""
Sample ride generator for testing and demos.

Produces the raw readings a phone would deliver during a ride: 1 Hz
location fixes along a loop and 50 Hz accelerometer samples, with
timestamps in milliseconds.
"""

import heapq
from typing import Optional

import numpy as np

from ridelog.client.sources import SampleSource
from ridelog.models.records import LocationReading, MotionSample


GRAVITY = 9.81


def generate_loop_ride(
    duration_s: float = 60.0,
    location_rate_hz: float = 1.0,
    motion_rate_hz: float = 50.0,
    start_ms: float = 1_700_000_000_000.0,
    center_lat: float = 51.0543,
    center_lon: float = 3.7174,
    loop_radius_m: float = 150.0,
    seed: Optional[int] = None,
) -> tuple[list[LocationReading], list[MotionSample]]:
    """
    Generate one ride around a circular loop.

    Returns:
        (location readings, motion samples), each in capture order
    """
    rng = np.random.default_rng(seed)

    n_fixes = int(duration_s * location_rate_hz)
    fix_times = np.arange(n_fixes) / location_rate_hz
    angle = fix_times / duration_s * 2 * np.pi

    # Local meters to degrees, approximate at this latitude
    x_local = loop_radius_m * np.cos(angle) + rng.normal(0, 1.5, n_fixes)
    y_local = loop_radius_m * np.sin(angle) + rng.normal(0, 1.5, n_fixes)
    meters_per_deg_lat = 111000
    meters_per_deg_lon = 111000 * np.cos(np.radians(center_lat))
    lat = center_lat + y_local / meters_per_deg_lat
    lon = center_lon + x_local / meters_per_deg_lon

    locations = [
        LocationReading(
            latitude=float(lat[i]),
            longitude=float(lon[i]),
            captured_at=float(start_ms + fix_times[i] * 1000.0),
        )
        for i in range(n_fixes)
    ]

    n_samples = int(duration_s * motion_rate_hz)
    sample_times = np.arange(n_samples) / motion_rate_hz

    # Gravity on z plus road vibration and the occasional pothole
    ax = rng.normal(0, 0.4, n_samples)
    ay = rng.normal(0, 0.4, n_samples)
    az = GRAVITY + rng.normal(0, 0.8, n_samples)
    bumps = rng.random(n_samples) < 0.01
    az = np.where(bumps, az + rng.normal(6.0, 2.0, n_samples), az)

    motions = [
        MotionSample(
            x=float(ax[i]),
            y=float(ay[i]),
            z=float(az[i]),
            captured_at=float(start_ms + sample_times[i] * 1000.0),
        )
        for i in range(n_samples)
    ]

    return locations, motions


def interleave_readings(
    location_source: SampleSource,
    motion_source: SampleSource,
    locations: list[LocationReading],
    motions: list[MotionSample],
) -> list[tuple[SampleSource, object]]:
    """
    Pair readings with their sources in capture order, locations first on ties.

    The result feeds ``ridelog.client.sources.replay_events``.
    """
    tagged_locations = ((r.captured_at, 0, i, location_source, r) for i, r in enumerate(locations))
    tagged_motions = ((r.captured_at, 1, i, motion_source, r) for i, r in enumerate(motions))
    merged = heapq.merge(tagged_locations, tagged_motions, key=lambda t: (t[0], t[1], t[2]))
    return [(source, reading) for _, _, _, source, reading in merged]
