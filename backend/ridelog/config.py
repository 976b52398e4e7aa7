"""
Environment-driven settings for the service and the ride client.
"""

import os
from dataclasses import dataclass
from pathlib import Path


EXPORT_FOLDER_ENV = "RIDELOG_EXPORT_FOLDER"
FLUSH_INTERVAL_ENV = "RIDELOG_FLUSH_INTERVAL_S"
SERVER_URL_ENV = "RIDELOG_SERVER_URL"

DEFAULT_EXPORT_FOLDER = Path("./data/rides")
DEFAULT_FLUSH_INTERVAL_S = 30.0
DEFAULT_SERVER_URL = "http://127.0.0.1:8000"


@dataclass
class ServiceSettings:
    """Settings for the collection service."""

    export_folder: Path = DEFAULT_EXPORT_FOLDER

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        return cls(export_folder=Path(os.getenv(EXPORT_FOLDER_ENV, str(DEFAULT_EXPORT_FOLDER))))


@dataclass
class ClientSettings:
    """Settings for the ride client."""

    server_url: str = DEFAULT_SERVER_URL
    flush_interval_s: float = DEFAULT_FLUSH_INTERVAL_S

    @classmethod
    def from_env(cls) -> "ClientSettings":
        interval = float(os.getenv(FLUSH_INTERVAL_ENV, str(DEFAULT_FLUSH_INTERVAL_S)))
        if interval <= 0:
            raise ValueError(f"{FLUSH_INTERVAL_ENV} must be positive, got {interval}")
        return cls(
            server_url=os.getenv(SERVER_URL_ENV, DEFAULT_SERVER_URL),
            flush_interval_s=interval,
        )
