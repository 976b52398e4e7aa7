"""
Batch sender: periodically drains the fuser buffer to the service.

A daemon thread ticks every ``interval_s`` seconds. Each tick sends the
buffered records as one ``data`` frame and drops them from the buffer only
after the connection accepted the frame. Ticks with an empty buffer or a
connection that is not ready are skipped; a failed send leaves the buffer
as it was for the next tick.

``stop`` waits for any in-flight tick, sends what is left, sends a ``stop``
frame and waits for the service to confirm the ride was saved. One lock
covers the readiness check, snapshot, send and commit of every batch, so a
tick and a stop never interleave.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from ridelog.client.connection import Connection
from ridelog.client.fuser import StreamFuser
from ridelog.client.session import RecordingSession
from ridelog.config import DEFAULT_FLUSH_INTERVAL_S
from ridelog.errors import ConnectionUnavailable, RideLogError, error_from_payload


logger = logging.getLogger(__name__)


@dataclass
class StopResult:
    """Service confirmation that a ride was saved."""

    index: int
    download_url: str
    message: str
    summary: dict[str, Any] = field(default_factory=dict)


class BatchSender:
    """Sends one recording session to the service in periodic batches."""

    def __init__(self, connection: Connection, interval_s: float = DEFAULT_FLUSH_INTERVAL_S):
        if interval_s <= 0:
            raise ValueError(f"Flush interval must be positive, got {interval_s}")
        self._connection = connection
        self._interval_s = interval_s
        self._lock = threading.Lock()
        self._session: Optional[RecordingSession] = None
        self._stop_event = threading.Event()
        self._timer: Optional[threading.Thread] = None
        self.batches_sent = 0

    @property
    def active(self) -> bool:
        return self._session is not None

    def start(self, session: RecordingSession) -> None:
        if self._session is not None:
            raise RuntimeError("A recording session is already active")

        session.open()
        self._session = session
        self._stop_event.clear()
        self._timer = threading.Thread(target=self._run_timer, name="batch-sender", daemon=True)
        self._timer.start()
        logger.info(f"Batch sender started (interval {self._interval_s}s)")

    def _run_timer(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            self.flush()

    def flush(self) -> int:
        """
        One routine tick.

        Returns:
            Number of records sent (0 when the tick was skipped or failed)
        """
        with self._lock:
            session = self._session
            if session is None:
                return 0
            fuser = session.fuser
            if fuser.pending == 0:
                logger.debug("Tick skipped: buffer empty")
                return 0
            if not self._connection.is_ready:
                logger.debug("Tick skipped: connection not ready")
                return 0
            try:
                return self._send_batch(fuser)
            except Exception as e:
                logger.warning(f"Batch send failed, keeping {fuser.pending} records for next tick: {e}")
                return 0

    def _send_batch(self, fuser: StreamFuser) -> int:
        # Caller holds self._lock
        records = fuser.snapshot()
        if not records:
            return 0
        self._connection.send_json({
            "type": "data",
            "payload": [r.to_dict() for r in records],
        })
        fuser.commit(len(records))
        self.batches_sent += 1
        logger.info(f"Sent batch of {len(records)} records")
        return len(records)

    def stop(self) -> StopResult:
        """
        End the recording and wait for the service to save it.

        Source subscriptions are released whatever the outcome. On failure
        the unsent records stay buffered and ``stop`` can be called again.

        Raises:
            ConnectionUnavailable: no ready connection; nothing was sent
            RideLogError: the service refused to save the ride
        """
        session = self._session
        if session is None:
            raise RuntimeError("No active recording session")

        try:
            self._stop_timer()
        finally:
            session.close()

        with self._lock:
            if not self._connection.is_ready:
                raise ConnectionUnavailable(
                    f"Cannot stop: connection unavailable; {session.fuser.pending} records kept, nothing was saved"
                )
            try:
                self._send_batch(session.fuser)
                self._connection.send_json({"type": "stop"})
            except RideLogError:
                raise
            except Exception as e:
                raise ConnectionUnavailable(f"Cannot stop: send failed ({e}); nothing was saved") from e
            result = self._await_stop_reply()

        self._session = None
        logger.info(f"Ride saved as session {result.index}")
        return result

    def _stop_timer(self) -> None:
        self._stop_event.set()
        timer, self._timer = self._timer, None
        if timer is not None and timer is not threading.current_thread():
            timer.join()

    def _await_stop_reply(self) -> StopResult:
        while True:
            reply = self._connection.receive_json()
            kind = reply.get("type")
            if kind == "stopped":
                return StopResult(
                    index=reply["index"],
                    download_url=reply["downloadURL"],
                    message=reply.get("message", ""),
                    summary=reply.get("summary") or {},
                )
            if kind == "error":
                if reply.get("replyTo") == "data":
                    logger.warning(f"Service rejected a batch: {reply.get('message')}")
                    continue
                raise error_from_payload(reply.get("error"), reply.get("message", "Stop failed"))
            # Live batches relayed from other senders
            logger.debug(f"Ignoring {kind!r} frame while waiting for stop reply")
