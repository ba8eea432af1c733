"""Domain models for work sessions."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

SessionStatus = Literal["active", "unpaid", "requested", "paid"]

ACTIVE = "active"
UNPAID = "unpaid"
REQUESTED = "requested"
PAID = "paid"

OUTSTANDING_STATUSES = frozenset({UNPAID, REQUESTED})


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted work session."""

    id: UUID
    client_id: UUID
    provider_id: UUID
    start_time: datetime
    hourly_rate: float
    crew_size: int
    status: SessionStatus
    end_time: datetime | None = None
    duration_hours: float | None = None
    person_hours: float | None = None
    amount: float | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    @property
    def is_outstanding(self) -> bool:
        return self.status in OUTSTANDING_STATUSES

    def billable_person_hours(self) -> float:
        """Person-hours, falling back to duration x crew for legacy rows."""
        if self.person_hours is not None:
            return self.person_hours
        return (self.duration_hours or 0.0) * max(self.crew_size, 1)
