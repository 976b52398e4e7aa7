"""
CSV export codec for finalized rides.

Fixed schema, in order: timestamp, latitude, longitude, total_accel.
Absent fields are written as empty strings. Numbers keep their natural
decimal form, never exponent notation: integral values drop the trailing
".0", everything else keeps the shortest digits that round-trip.
"""

import io
from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ridelog.models.records import FusedRecord


EXPORT_COLUMNS = ["timestamp", "latitude", "longitude", "total_accel"]


def format_number(value: Optional[float]) -> str:
    """Render a number the way it would read naturally, or "" when absent."""
    if value is None:
        return ""
    if isinstance(value, bool):
        raise TypeError("Booleans are not valid export values")
    if isinstance(value, int):
        return str(value)
    return np.format_float_positional(float(value), trim="-")


def record_to_row(record: FusedRecord) -> list[str]:
    location = record.location
    return [
        format_number(record.captured_at),
        format_number(location.latitude if location is not None else None),
        format_number(location.longitude if location is not None else None),
        format_number(record.total_accel),
    ]


def records_to_frame(records: Iterable[FusedRecord]) -> pd.DataFrame:
    """Build the export table as strings, one row per record in stream order."""
    rows = [record_to_row(r) for r in records]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS, dtype=str)


def render_csv(records: Iterable[FusedRecord]) -> str:
    """Serialize fused records to CSV text with a header row."""
    frame = records_to_frame(records)
    return frame.to_csv(index=False, lineterminator="\n")


def parse_csv(source: Union[Path, str]) -> pd.DataFrame:
    """
    Read an export back as strings.

    ``source`` is a file path or CSV text. Empty cells stay empty strings
    rather than becoming NaN.
    """
    if isinstance(source, Path):
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
    else:
        df = pd.read_csv(io.StringIO(source), dtype=str, keep_default_na=False)
    df.columns = df.columns.str.strip()

    missing = [c for c in EXPORT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Export is missing columns: {missing}")
    return df[EXPORT_COLUMNS]


def frame_to_columns(df: pd.DataFrame) -> dict[str, NDArray[np.float64]]:
    """Convert a parsed export into float columns, NaN for empty cells."""
    return {
        name: pd.to_numeric(df[name], errors="coerce").values.astype(np.float64)
        for name in EXPORT_COLUMNS
    }
