"""
Session Manager - assembles incoming batches into rides.

Exactly one session is open at a time. Batches are appended to it in
arrival order; ``finalize`` closes it, writes its CSV export and opens the
next session. Append and finalize are serialized by one lock, so finalize
is a linearization point: a batch either lands in the session being
finalized or waits and lands in the next one.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ridelog.errors import EmptySession
from ridelog.models.records import ExportArtifact, FusedRecord, Session, SessionStatus
from ridelog.models.summary import RideSummary
from ridelog.models.wire import parse_batch
from ridelog.services.export_store import ExportStore
from ridelog.services.exporter import render_csv
from ridelog.services.stats import summarize_records


logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    """Outcome of a successful finalize."""

    session: Session
    artifact: ExportArtifact
    summary: RideSummary

    @property
    def external_index(self) -> int:
        return self.artifact.external_index


@dataclass
class SessionStatusSnapshot:
    """Point-in-time view of the open session."""

    index: int
    record_count: int
    status: SessionStatus


class SessionManager:
    """Owns the open session and the closing of sessions into exports."""

    def __init__(self, store: ExportStore):
        self._store = store
        self._lock = threading.Lock()
        self._session = Session(index=store.next_index)

    @property
    def store(self) -> ExportStore:
        return self._store

    def ingest(self, payload: Any) -> int:
        """
        Append a batch to the open session.

        ``payload`` is the decoded JSON body. It is validated in full before
        anything is appended.

        Returns:
            Running record count of the open session

        Raises:
            InvalidPayload: payload is not a list of fused records
        """
        batch = parse_batch(payload)
        with self._lock:
            self._session.records.extend(batch)
            total = self._session.record_count
            index = self._session.index

        logger.info(f"Received {len(batch)} records for session {index + 1} (total {total})")
        return total

    def finalize(self) -> FinalizeResult:
        """
        Close the open session and materialize its CSV export.

        All-or-nothing: on failure the open session is left untouched and
        no export becomes visible.

        Raises:
            EmptySession: the open session has no records
            StorageWriteFailure: the export could not be written
        """
        with self._lock:
            session = self._session
            if session.is_empty:
                raise EmptySession("Nothing to save: the current ride has no records")

            summary = summarize_records(session.records)
            logger.info(
                f"Finalizing session {session.index + 1}: "
                f"{summary.record_count} records, accel count={summary.count} "
                f"mean={summary.mean} max={summary.max} min={summary.min}"
            )

            free_index = self._store.first_free_index(session.index)
            if free_index != session.index:
                logger.warning(
                    f"Export slot for session {session.index + 1} is taken out-of-band; "
                    f"saving as session {free_index + 1}"
                )
                session.index = free_index

            text = render_csv(session.records)
            artifact = self._store.write(session.index, text, row_count=session.record_count)

            session.status = SessionStatus.CLOSED
            self._session = Session(index=max(self._store.next_index, session.index + 1))

        logger.info(f"Session {session.index + 1} closed; export at {artifact.path.name}")
        return FinalizeResult(session=session, artifact=artifact, summary=summary)

    def status(self) -> SessionStatusSnapshot:
        with self._lock:
            return SessionStatusSnapshot(
                index=self._session.index,
                record_count=self._session.record_count,
                status=self._session.status,
            )

    def current_records(self) -> list[FusedRecord]:
        """Copy of the open session's records."""
        with self._lock:
            return list(self._session.records)


# Global session manager (set up by app initialization)
_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get the global session manager, creating a default one if needed."""
    global _manager
    if _manager is None:
        from ridelog.config import ServiceSettings
        _manager = SessionManager(ExportStore(ServiceSettings.from_env().export_folder))
    return _manager


def init_session_manager(export_folder: Path) -> SessionManager:
    """Initialize the global session manager with an export folder."""
    global _manager
    _manager = SessionManager(ExportStore(export_folder))
    return _manager
