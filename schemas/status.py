"""
Pydantic schema for status records kept in the external status store
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, validator

# Lowest representable watermark, used when the store holds no handled record
MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)

PENDING_STATUS = 0

_DATETIME = TypeAdapter(datetime)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp, accepting a trailing ``Z`` and fractions of
    any precision (digits past microseconds are dropped).

    Naive values are taken to be UTC so that every timestamp the service
    compares is timezone-aware.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = _DATETIME.validate_python(value.strip())
    else:
        raise ValueError(f"Not a timestamp: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class StatusRecord(BaseModel):
    """
    Sync bookkeeping for one source document.

    ``synced_status`` is 0 while delivery is pending, otherwise the HTTP
    code of the last delivery attempt. ``synced_timestamp`` stays empty
    until the first attempt.
    """

    id: str = Field(..., min_length=1)
    last_modified: datetime = Field(..., alias="lastModified")
    synced_status: int = Field(PENDING_STATUS, alias="syncedStatus")
    synced_timestamp: Optional[datetime] = Field(None, alias="syncedTimestamp")

    @validator("id", pre=True)
    def coerce_id(cls, v):
        """Stores may hand back numeric ids"""
        if v is None:
            return v
        return str(v)

    @validator("last_modified", "synced_timestamp", pre=True)
    def parse_timestamps(cls, v):
        if v is None:
            return v
        return parse_timestamp(v)

    @property
    def is_pending(self) -> bool:
        return self.synced_status == PENDING_STATUS

    def to_payload(self) -> dict:
        """JSON body understood by the status store."""
        payload = {
            "id": self.id,
            "lastModified": format_timestamp(self.last_modified),
            "syncedStatus": self.synced_status,
        }
        if self.synced_timestamp is not None:
            payload["syncedTimestamp"] = format_timestamp(self.synced_timestamp)
        return payload

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "1",
                "lastModified": "2024-01-01T00:00:00Z",
                "syncedStatus": 200,
                "syncedTimestamp": "2024-01-01T00:05:00Z"
            }
        }
