"""
Export Store - append-only storage of finalized ride exports.

One CSV file per closed session, named from its 1-based external index
(``ride_<n>.csv``). Files are written through a temporary file and moved
into place, so a reader never sees a partially written export.
"""

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Optional

import pandas as pd

from ridelog.errors import NotFound, StorageWriteFailure
from ridelog.models.records import ExportArtifact
from ridelog.services.exporter import parse_csv


logger = logging.getLogger(__name__)


EXPORT_NAME_PATTERN = re.compile(r"^ride_(\d+)\.csv$")
INDEX_MARKER = ".next_index"


def export_filename(index: int) -> str:
    """File name for the export of internal session ``index``."""
    return f"ride_{index + 1}.csv"


class ExportStore:
    """
    Maps session indices to their CSV exports on disk.

    Indices are internal and 0-based. ``next_index`` only ever grows. The
    high-water mark is kept in ``.next_index`` next to the exports, so an
    index is never handed out twice, across restarts too, even if its file
    is later deleted out-of-band.
    """

    def __init__(self, folder: Path):
        self._folder = folder
        self._index: dict[int, Path] = {}
        self._next_index = 0
        self._lock = threading.Lock()

        self._folder.mkdir(parents=True, exist_ok=True)
        self._next_index = self._read_marker()
        self.scan_folder()

    @property
    def folder(self) -> Path:
        return self._folder

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def marker_path(self) -> Path:
        return self._folder / INDEX_MARKER

    def scan_folder(self) -> int:
        """
        Index the exports already present in the folder.

        Returns:
            Number of exports found
        """
        count = 0
        with self._lock:
            for csv_file in self._folder.glob("ride_*.csv"):
                match = EXPORT_NAME_PATTERN.match(csv_file.name)
                if match is None or not csv_file.is_file():
                    continue
                external = int(match.group(1))
                if external < 1:
                    continue
                index = external - 1
                self._index[index] = csv_file
                self._next_index = max(self._next_index, index + 1)
                count += 1
                logger.debug(f"Indexed export: {index} -> {csv_file.name}")

        logger.info(f"Scanned {count} ride exports in {self._folder}")
        return count

    def is_taken(self, index: int) -> bool:
        """True if ``index`` already has an export, known or dropped in out-of-band."""
        return index in self._index or (self._folder / export_filename(index)).exists()

    def first_free_index(self, start: int) -> int:
        index = start
        while self.is_taken(index):
            index += 1
        return index

    def write(self, index: int, text: str, row_count: int) -> ExportArtifact:
        """
        Durably write the export for ``index``.

        The high-water mark is persisted before the export itself, so a
        crash in between can only leave a gap in the numbering.

        Raises:
            StorageWriteFailure: if an export already exists at ``index`` or
                the file could not be written. No export is left behind.
        """
        target = self._folder / export_filename(index)
        with self._lock:
            if self.is_taken(index):
                raise StorageWriteFailure(
                    f"Export for session {index + 1} already exists; nothing was saved"
                )

            high_water = max(self._next_index, index + 1)
            try:
                if high_water > self._read_marker():
                    self._write_atomic(self.marker_path, f"{high_water}\n")
                self._write_atomic(target, text)
            except OSError as e:
                logger.error(f"Failed to write export {target}: {e}")
                raise StorageWriteFailure(
                    f"Could not write export for session {index + 1}; nothing was saved"
                ) from e

            self._index[index] = target
            self._next_index = high_water

        logger.info(f"Wrote export {target.name} ({row_count} rows)")
        return ExportArtifact(session_index=index, path=target, row_count=row_count)

    def _write_atomic(self, target: Path, text: str) -> None:
        """Write through a temporary file in the same folder and move it into place."""
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.stem}.", suffix=".tmp", dir=self._folder
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except OSError:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _read_marker(self) -> int:
        try:
            return int(self.marker_path.read_text().strip())
        except FileNotFoundError:
            return 0
        except ValueError:
            logger.warning(f"Ignoring unreadable index marker {self.marker_path}")
            return 0

    def get(self, index: int) -> Path:
        """
        Path of the export for internal ``index``.

        Raises:
            NotFound: if no export exists at that index
        """
        path: Optional[Path] = self._index.get(index)
        if path is None or not path.is_file():
            raise NotFound(f"No ride export for session {index + 1}")
        return path

    def list_recent(self, limit: int) -> list[tuple[int, Path]]:
        """Most recent ``limit`` exports, highest index first."""
        with self._lock:
            items = sorted(self._index.items(), reverse=True)
        return [(i, p) for i, p in items if p.is_file()][:limit]

    def load_rows(self, index: int) -> pd.DataFrame:
        """Parse the export for ``index`` back into a string table."""
        return parse_csv(self.get(index))

    def __len__(self) -> int:
        return len(self._index)
