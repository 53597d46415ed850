"""
Result types passed between the REST clients, the engine and the scheduler
"""

import enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any


class WriteOutcome(str, enum.Enum):
    """Result of a status store write that did not fail"""
    CREATED = "created"
    UPDATED = "updated"
    CONFLICT = "conflict"


class TickStatus(str, enum.Enum):
    """How a reconciliation tick ended"""
    COMPLETED = "completed"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


@dataclass
class PublishResult:
    """Raw answer of the target endpoint; interpreted by the engine."""
    code: int
    body: str = ""


@dataclass
class TickStats:
    discovered: int = 0
    skipped: int = 0
    registered: int = 0
    registration_conflicts: int = 0
    pending: int = 0
    delivered: int = 0
    delivery_failures: int = 0
    outcome_conflicts: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class TickResult:
    """
    Outcome of one reconciliation tick.

    The scheduler keeps polling after COMPLETED and RECOVERABLE ticks and
    stops for good after a FATAL one.
    """
    status: TickStatus
    stats: TickStats = field(default_factory=TickStats)
    watermark: Optional[datetime] = None
    error: Optional[BaseException] = None

    @property
    def is_fatal(self) -> bool:
        return self.status == TickStatus.FATAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "stats": self.stats.to_dict(),
            "watermark": self.watermark.isoformat() if self.watermark else None,
            "error": str(self.error) if self.error else None,
        }
