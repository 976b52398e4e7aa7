#!/usr/bin/env python3
"""
Replay a synthetic ride against a running collector.

Usage:
    python run_client.py [--server URL] [--duration SECONDS] [--interval SECONDS] [--realtime]

Examples:
    python run_client.py                          # 60 s ride, sent as fast as possible
    python run_client.py --duration 120 --realtime --interval 5
"""

import argparse
import logging
import sys
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent))

from ridelog.client.connection import HttpConnection
from ridelog.client.sender import BatchSender
from ridelog.client.session import RecordingSession
from ridelog.client.sources import SampleSource, replay_events
from ridelog.config import ClientSettings
from ridelog.errors import RideLogError
from ridelog.utils.sample_data import generate_loop_ride, interleave_readings


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("run_client")


def main():
    settings = ClientSettings.from_env()

    parser = argparse.ArgumentParser(description="Ride Telemetry synthetic ride client")
    parser.add_argument(
        "--server", "-s",
        default=settings.server_url,
        help=f"Collector base URL (default: {settings.server_url})"
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=60.0,
        help="Ride duration in seconds (default: 60)"
    )
    parser.add_argument(
        "--interval", "-i",
        type=float,
        default=settings.flush_interval_s,
        help=f"Flush interval in seconds (default: {settings.flush_interval_s})"
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Replay readings at their recorded pace"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the synthetic ride"
    )

    args = parser.parse_args()

    location_source = SampleSource("location")
    motion_source = SampleSource("motion")
    locations, motions = generate_loop_ride(duration_s=args.duration, seed=args.seed)
    events = interleave_readings(location_source, motion_source, locations, motions)

    connection = HttpConnection(args.server)
    sender = BatchSender(connection, interval_s=args.interval)
    try:
        sender.start(RecordingSession(location_source, motion_source))
        count = replay_events(events, time_scale=0.001 if args.realtime else None)
        logger.info(f"Replayed {count} readings")
        result = sender.stop()
    except RideLogError as e:
        logger.error(f"Ride was not saved: {e.message}")
        return 1
    finally:
        connection.close()

    print(f"\n{result.message}")
    print(f"Download: {args.server.rstrip('/')}{result.download_url}")
    for key, value in result.summary.items():
        print(f"  {key}: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
