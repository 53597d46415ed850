"""
Pydantic schemas and result types for the document sync service.

Schemas:
    status: StatusRecord as exchanged with the status store, plus the
        timestamp helpers shared by every component
    outcomes: Write/publish/tick result types

Usage:
    from schemas.status import StatusRecord, parse_timestamp
    from schemas.outcomes import WriteOutcome, TickResult

Example:
    record = StatusRecord(id="1", last_modified="2024-01-01T00:00:00Z")
    assert record.is_pending
    record.to_payload()
    # {"id": "1", "lastModified": "2024-01-01T00:00:00Z", "syncedStatus": 0}
"""

__all__ = [
    "StatusRecord",
    "MIN_TIMESTAMP",
    "parse_timestamp",
    "format_timestamp",
    "WriteOutcome",
    "PublishResult",
    "TickStatus",
    "TickStats",
    "TickResult",
]
