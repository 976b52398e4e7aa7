"""
API schemas (Pydantic models) for responses.

Incoming records are validated by ridelog.models.wire.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ridelog.models.summary import RideSummary


# ============================================================================
# Ingest / Stop Schemas
# ============================================================================

class UploadResponse(BaseModel):
    """Result of accepting one batch."""
    message: str
    received: int
    total_stored: int = Field(serialization_alias="totalStored")


class RideSummaryResponse(BaseModel):
    """Summary statistics of a finalized ride."""
    record_count: int
    location_count: int
    count: int
    mean: Optional[float] = None
    max: Optional[float] = None
    min: Optional[float] = None
    duration: float
    distance_m: float

    @classmethod
    def from_summary(cls, summary: RideSummary) -> "RideSummaryResponse":
        return cls(**summary.to_dict())


class StopResponse(BaseModel):
    """Result of finalizing the open session."""
    message: str
    index: int  # 1-based external index
    download_url: str = Field(serialization_alias="downloadURL")
    summary: RideSummaryResponse


# ============================================================================
# Session Schemas
# ============================================================================

class SessionStatusResponse(BaseModel):
    """State of the open session."""
    index: int  # 1-based external index the session will be saved under
    record_count: int
    status: str


class SessionListItem(BaseModel):
    """A finalized session available for download."""
    index: int
    filename: str
    download_url: str = Field(serialization_alias="downloadURL")
    size_bytes: int


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    message: str
    error: Optional[str] = None
