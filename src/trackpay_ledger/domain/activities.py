"""Activity journal entries.

Each activity type has its own payload class; ``ActivityData`` is the union
consumers match on. Payload numbers are snapshot copies for display and are
never read back for balance computation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Literal
from uuid import UUID

ActivityType = Literal[
    "session_start", "session_end", "payment_request", "payment_completed"
]


@dataclass(frozen=True)
class SessionStarted:
    """Work started on a session."""

    type: ClassVar[str] = "session_start"

    session_id: UUID
    start_time: datetime
    crew_size: int


@dataclass(frozen=True)
class SessionEnded:
    """Work stopped and the session amount was fixed."""

    type: ClassVar[str] = "session_end"

    session_id: UUID
    end_time: datetime
    duration_hours: float
    person_hours: float
    crew_size: int
    amount: float


@dataclass(frozen=True)
class PaymentRequested:
    """A payment request batch was created."""

    type: ClassVar[str] = "payment_request"

    batch_id: UUID
    session_ids: tuple[UUID, ...]
    amount: float
    session_count: int
    person_hours: float


@dataclass(frozen=True)
class PaymentCompleted:
    """A payment was recorded against a set of sessions."""

    type: ClassVar[str] = "payment_completed"

    payment_id: UUID
    session_ids: tuple[UUID, ...]
    amount: float
    method: str
    session_count: int
    person_hours: float


ActivityData = SessionStarted | SessionEnded | PaymentRequested | PaymentCompleted

ACTIVITY_TYPES: tuple[str, ...] = (
    SessionStarted.type,
    SessionEnded.type,
    PaymentRequested.type,
    PaymentCompleted.type,
)


@dataclass(frozen=True)
class ActivityRecord:
    """A persisted journal entry."""

    id: UUID
    sequence: int
    client_id: UUID
    provider_id: UUID
    timestamp: datetime
    data: ActivityData

    @property
    def type(self) -> str:
        return self.data.type

    @property
    def session_id(self) -> UUID | None:
        if isinstance(self.data, SessionStarted | SessionEnded):
            return self.data.session_id
        return None


@dataclass(frozen=True)
class ActivityFilter:
    """Query options for the activity log."""

    client_id: UUID | None = None
    provider_id: UUID | None = None
    types: frozenset[str] | None = None
    limit: int | None = None
    newest_first: bool = False


def activity_sort_key(activity: ActivityRecord) -> tuple[datetime, int]:
    """Stable timeline order: timestamp, then insertion sequence."""
    return activity.timestamp, activity.sequence


def payload_to_json(data: ActivityData) -> dict[str, object]:
    """Serialize a payload into a JSON-compatible dict."""
    if isinstance(data, SessionStarted):
        return {
            "sessionId": str(data.session_id),
            "startTime": data.start_time.isoformat(),
            "crewSize": data.crew_size,
        }
    if isinstance(data, SessionEnded):
        return {
            "sessionId": str(data.session_id),
            "endTime": data.end_time.isoformat(),
            "duration": data.duration_hours,
            "personHours": data.person_hours,
            "crewSize": data.crew_size,
            "amount": data.amount,
        }
    if isinstance(data, PaymentRequested):
        return {
            "batchId": str(data.batch_id),
            "sessionIds": [str(session_id) for session_id in data.session_ids],
            "amount": data.amount,
            "sessionCount": data.session_count,
            "personHours": data.person_hours,
        }
    return {
        "paymentId": str(data.payment_id),
        "sessionIds": [str(session_id) for session_id in data.session_ids],
        "amount": data.amount,
        "method": data.method,
        "sessionCount": data.session_count,
        "personHours": data.person_hours,
    }


def payload_from_json(activity_type: str, raw: dict[str, object]) -> ActivityData:
    """Parse a stored payload for the given activity type."""
    if activity_type == SessionStarted.type:
        return SessionStarted(
            session_id=UUID(str(raw["sessionId"])),
            start_time=datetime.fromisoformat(str(raw["startTime"])),
            crew_size=int(raw.get("crewSize", 1)),
        )
    if activity_type == SessionEnded.type:
        return SessionEnded(
            session_id=UUID(str(raw["sessionId"])),
            end_time=datetime.fromisoformat(str(raw["endTime"])),
            duration_hours=float(raw.get("duration", 0.0)),
            person_hours=float(raw.get("personHours", 0.0)),
            crew_size=int(raw.get("crewSize", 1)),
            amount=float(raw.get("amount", 0.0)),
        )
    if activity_type == PaymentRequested.type:
        return PaymentRequested(
            batch_id=UUID(str(raw["batchId"])),
            session_ids=_parse_ids(raw.get("sessionIds")),
            amount=float(raw.get("amount", 0.0)),
            session_count=int(raw.get("sessionCount", 0)),
            person_hours=float(raw.get("personHours", 0.0)),
        )
    if activity_type == PaymentCompleted.type:
        return PaymentCompleted(
            payment_id=UUID(str(raw["paymentId"])),
            session_ids=_parse_ids(raw.get("sessionIds")),
            amount=float(raw.get("amount", 0.0)),
            method=str(raw.get("method", "other")),
            session_count=int(raw.get("sessionCount", 0)),
            person_hours=float(raw.get("personHours", 0.0)),
        )
    raise ValueError(f"Unknown activity type: {activity_type}")


def _parse_ids(value: object) -> tuple[UUID, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(UUID(str(item)) for item in value)
