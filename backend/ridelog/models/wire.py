"""
Wire format of fused records (JSON), validated with pydantic.

Accepted shape::

    {"capturedAt": 100, "location": {"latitude": 1, "longitude": 2}, "totalAccel": 1.0}

``timestamp`` is accepted for ``capturedAt``, ``lat``/``lon`` for the
coordinates and ``total_accel`` for ``totalAccel``.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from ridelog.errors import InvalidPayload
from ridelog.models.records import FusedRecord, LocationReading


class LocationIn(BaseModel):
    """Location part of an incoming record."""

    model_config = ConfigDict(extra="ignore")

    latitude: float = Field(
        validation_alias=AliasChoices("latitude", "lat"),
        ge=-90.0,
        le=90.0,
        allow_inf_nan=False,
    )
    longitude: float = Field(
        validation_alias=AliasChoices("longitude", "lon", "lng"),
        ge=-180.0,
        le=180.0,
        allow_inf_nan=False,
    )
    captured_at: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("capturedAt", "timestamp", "captured_at"),
        allow_inf_nan=False,
    )

    def to_reading(self) -> LocationReading:
        return LocationReading(
            latitude=self.latitude,
            longitude=self.longitude,
            captured_at=self.captured_at,
        )


class FusedRecordIn(BaseModel):
    """One incoming fused record."""

    model_config = ConfigDict(extra="ignore")

    captured_at: float = Field(
        validation_alias=AliasChoices("capturedAt", "timestamp", "captured_at"),
        allow_inf_nan=False,
    )
    location: Optional[LocationIn] = None
    total_accel: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("totalAccel", "total_accel"),
        ge=0.0,
        allow_inf_nan=False,
    )

    @model_validator(mode="after")
    def _require_measurement(self):
        if self.location is None and self.total_accel is None:
            raise ValueError("record needs a location or a totalAccel value")
        return self

    def to_record(self) -> FusedRecord:
        return FusedRecord(
            captured_at=self.captured_at,
            location=self.location.to_reading() if self.location is not None else None,
            total_accel=self.total_accel,
        )


_BATCH_ADAPTER = TypeAdapter(list[FusedRecordIn])


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    return f"{where}: {first.get('msg', 'invalid value')}" if where else first.get("msg", "invalid value")


def parse_batch(payload: Any) -> list[FusedRecord]:
    """
    Validate a raw JSON batch and convert it to fused records.

    The whole batch is rejected if any item is malformed.

    Raises:
        InvalidPayload: payload is not a list, or an item is not a record
    """
    if not isinstance(payload, list):
        raise InvalidPayload(
            f"Expected a JSON array of records, got {type(payload).__name__}"
        )
    try:
        items = _BATCH_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise InvalidPayload(f"Invalid record in batch ({_describe(e)})") from e
    return [item.to_record() for item in items]
