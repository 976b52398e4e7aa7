"""
Client-side recording session: the fuser plus its source subscriptions.
"""

import logging
from contextlib import ExitStack
from typing import Optional

from ridelog.client.fuser import StreamFuser
from ridelog.client.sources import SampleSource
from ridelog.models.records import LocationReading, MotionSample


logger = logging.getLogger(__name__)


class RecordingSession:
    """
    State of one recording, created on start and released on stop.

    ``open`` subscribes the fuser to both sources; ``close`` releases the
    subscriptions and is safe to call more than once.
    """

    def __init__(
        self,
        location_source: SampleSource[LocationReading],
        motion_source: SampleSource[MotionSample],
    ):
        self.location_source = location_source
        self.motion_source = motion_source
        self.fuser = StreamFuser()
        self._subscriptions: Optional[ExitStack] = None

    @property
    def is_open(self) -> bool:
        return self._subscriptions is not None

    def open(self) -> None:
        if self._subscriptions is not None:
            raise RuntimeError("Recording session is already open")

        # If the second subscribe fails the first one is released
        with ExitStack() as stack:
            stack.enter_context(self.location_source.subscribe(self.fuser.on_location))
            stack.enter_context(self.motion_source.subscribe(self.fuser.on_motion))
            self._subscriptions = stack.pop_all()

        logger.info("Recording session opened")

    def close(self) -> None:
        if self._subscriptions is None:
            return
        subscriptions, self._subscriptions = self._subscriptions, None
        subscriptions.close()
        logger.info(f"Recording session closed ({self.fuser.pending} records still buffered)")

    def __enter__(self) -> "RecordingSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
