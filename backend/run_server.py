#!/usr/bin/env python3
"""
Launch script for the Ride Telemetry Collector.

Usage:
    python run_server.py [export_folder] [--port PORT] [--host HOST]

Examples:
    python run_server.py                    # Use default ./data/rides folder
    python run_server.py /path/to/exports   # Use custom folder
    python run_server.py --port 5000        # Run on port 5000
"""

import argparse
import os
import sys
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent))

from ridelog.config import DEFAULT_EXPORT_FOLDER, EXPORT_FOLDER_ENV


def main():
    parser = argparse.ArgumentParser(description="Ride Telemetry Collector Server")
    parser.add_argument(
        "export_folder",
        nargs="?",
        default=os.getenv(EXPORT_FOLDER_ENV, str(DEFAULT_EXPORT_FOLDER)),
        help=f"Folder that receives ride CSV exports (default: {DEFAULT_EXPORT_FOLDER})"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    export_folder = Path(args.export_folder)

    print(f"Ride Telemetry Collector")
    print(f"=" * 40)
    print(f"Export folder: {export_folder.absolute()}")
    print(f"Server: http://{args.host}:{args.port}")
    print(f"=" * 40)

    # Picked up by the FastAPI lifespan handler
    os.environ[EXPORT_FOLDER_ENV] = str(export_folder)

    print("\nAPI Endpoints:")
    print("  GET  /                  - Health check")
    print("  GET  /health            - Detailed health")
    print("  POST /upload            - Append a batch to the current ride")
    print("  POST /stop              - Save the current ride")
    print("  GET  /data              - Records of the current ride")
    print("  GET  /status            - Current ride status")
    print("  GET  /sessions          - Most recent saved rides")
    print("  GET  /sessions/{n}/summary - Statistics of a saved ride")
    print("  GET  /download/{n}      - Download a saved ride as CSV")
    print("  WS   /ws                - Live batches and stop channel")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "ridelog.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
