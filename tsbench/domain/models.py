"""
Domain models for the time-series storage benchmark.

Defines the measurement record persisted by every backend. The same shape maps
to the `data_objects` table on PostgreSQL/TimescaleDB and to documents in the
MongoDB collection.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple

from pydantic import BaseModel, Field, field_validator

# Column order shared by every SQL statement and document projection.
FIELDS: Tuple[str, ...] = (
    "created_at",
    "updated_at",
    "start_time",
    "interval",
    "area",
    "source",
    "value",
)

NaturalKey = Tuple[datetime, int, str]


class DataObject(BaseModel):
    """
    One measurement observation.

    (`start_time`, `interval`, `area`) is the natural key; upserts update
    `updated_at`, `source` and `value` and never touch `created_at`.
    """

    created_at: datetime = Field(..., description="Row creation timestamp.")
    updated_at: datetime = Field(..., description="Row update timestamp.")
    start_time: datetime = Field(..., description="Start of the observation bucket.")
    interval: int = Field(..., description="Bucket width in milliseconds.")
    area: str = Field(..., description="Measured entity tag.")
    source: str = Field(..., description="Provenance label.")
    value: float = Field(..., description="Measured value.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @field_validator("created_at", "updated_at", "start_time")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def key(self) -> NaturalKey:
        return (self.start_time, self.interval, self.area)

    def to_document(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in FIELDS}

    def as_row(self) -> Tuple[Any, ...]:
        """Values in FIELDS order, ready for a parameterized INSERT."""
        return tuple(getattr(self, name) for name in FIELDS)


def collapse_duplicates(docs: Iterable[DataObject]) -> List[DataObject]:
    """
    Merge records sharing a natural key into one, as sequential upserts would.

    The last occurrence supplies `updated_at`, `source` and `value`; the first
    occurrence keeps its `created_at` and its position in the output.
    """
    merged: Dict[NaturalKey, DataObject] = {}
    for doc in docs:
        first = merged.get(doc.key)
        if first is None:
            merged[doc.key] = doc
        else:
            merged[doc.key] = doc.model_copy(update={"created_at": first.created_at})
    return list(merged.values())


__all__ = ["DataObject", "FIELDS", "NaturalKey", "collapse_duplicates"]
