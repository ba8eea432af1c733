"""Money state formulas shared by every balance consumer."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal
from uuid import UUID

from trackpay_ledger.domain.sessions import PAID, REQUESTED, UNPAID, SessionRecord

PaymentStatus = Literal["unpaid", "requested", "paid"]

_CENT = Decimal("0.01")
SECONDS_PER_HOUR = 3600


def round_cents(value: float) -> float:
    """Round a currency amount to the cent, half away from zero."""
    return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def to_cents(value: float) -> int:
    """Convert a currency amount to integer cents."""
    return int(
        (Decimal(repr(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )


@dataclass(frozen=True)
class ClientSummary:
    """Balance and hours for one client, derived from session rows."""

    client_id: UUID
    total_person_hours: float
    unpaid_person_hours: float
    requested_person_hours: float
    total_duration_hours: float
    unpaid_duration_hours: float
    requested_duration_hours: float
    unpaid_balance: float
    requested_balance: float
    total_unpaid_balance: float
    total_earned: float
    payment_status: PaymentStatus
    session_count: int
    unpaid_session_count: int

    @property
    def has_unpaid_sessions(self) -> bool:
        return self.unpaid_session_count > 0

    @property
    def outstanding_person_hours(self) -> float:
        return self.unpaid_person_hours + self.requested_person_hours


@dataclass(frozen=True)
class PendingRequestRef:
    """The parts of a pending request a money display needs."""

    id: UUID
    amount: float
    created_at: datetime


@dataclass(frozen=True)
class MoneyState:
    """Serialization-safe money state for one client."""

    client_id: UUID
    balance_due_cents: int
    unpaid_duration_sec: int
    has_active_session: bool
    payment_status: PaymentStatus
    last_pending_request: PendingRequestRef | None


@dataclass(frozen=True)
class DeletionCheck:
    """Whether a client relationship can be removed."""

    can_delete: bool
    reason: Literal["active_session", "unpaid_balance", "payment_request"] | None = (
        None
    )
    unpaid_balance: float | None = None


def derive_payment_status(
    unpaid_count: int, requested_count: int
) -> PaymentStatus:
    """Unpaid wins over requested, which wins over paid."""
    if unpaid_count > 0:
        return "unpaid"
    if requested_count > 0:
        return "requested"
    return "paid"


def zero_summary(client_id: UUID) -> ClientSummary:
    """Return the summary of a client with no sessions."""
    return summarize_sessions(client_id, [])


def summarize_sessions(
    client_id: UUID, sessions: Iterable[SessionRecord]
) -> ClientSummary:
    """Aggregate one client's sessions into a summary."""
    unpaid = []
    requested = []
    paid = []
    everything = []
    for session in sessions:
        everything.append(session)
        if session.status == UNPAID:
            unpaid.append(session)
        elif session.status == REQUESTED:
            requested.append(session)
        elif session.status == PAID:
            paid.append(session)

    unpaid_balance = round_cents(_sum_amount(unpaid))
    requested_balance = round_cents(_sum_amount(requested))
    return ClientSummary(
        client_id=client_id,
        total_person_hours=_sum_person_hours(everything),
        unpaid_person_hours=_sum_person_hours(unpaid),
        requested_person_hours=_sum_person_hours(requested),
        total_duration_hours=_sum_duration(everything),
        unpaid_duration_hours=_sum_duration(unpaid),
        requested_duration_hours=_sum_duration(requested),
        unpaid_balance=unpaid_balance,
        requested_balance=requested_balance,
        total_unpaid_balance=round_cents(unpaid_balance + requested_balance),
        total_earned=round_cents(_sum_amount(paid)),
        payment_status=derive_payment_status(len(unpaid), len(requested)),
        session_count=len(everything),
        unpaid_session_count=len(unpaid),
    )


def build_money_state(
    summary: ClientSummary,
    has_active_session: bool,
    pending: PendingRequestRef | None,
) -> MoneyState:
    """Fold a summary, the active flag and the pending request together."""
    return MoneyState(
        client_id=summary.client_id,
        balance_due_cents=to_cents(summary.total_unpaid_balance),
        unpaid_duration_sec=round(
            summary.outstanding_person_hours * SECONDS_PER_HOUR
        ),
        has_active_session=has_active_session,
        payment_status=summary.payment_status,
        last_pending_request=pending,
    )


def _sum_amount(sessions: list[SessionRecord]) -> float:
    return sum((session.amount or 0.0) for session in sessions)


def _sum_person_hours(sessions: list[SessionRecord]) -> float:
    return sum(session.billable_person_hours() for session in sessions)


def _sum_duration(sessions: list[SessionRecord]) -> float:
    return sum((session.duration_hours or 0.0) for session in sessions)
