"""Payment settlement: closes sessions as paid."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from trackpay_ledger.domain.activities import PaymentCompleted
from trackpay_ledger.domain.errors import (
    InvalidStateError,
    NoEligibleSessionsError,
    NotFoundError,
    ValidationError,
)
from trackpay_ledger.domain.money import to_cents
from trackpay_ledger.domain.payments import (
    APPROVED,
    PAYMENT_METHODS,
    PENDING,
    PaymentRecord,
)
from trackpay_ledger.domain.sessions import (
    OUTSTANDING_STATUSES,
    PAID,
    SessionRecord,
)
from trackpay_ledger.services.activities import ActivityService
from trackpay_ledger.services.clock import Clock, SystemClock
from trackpay_ledger.services.compensation import compensating
from trackpay_ledger.services.money_state import MoneyStateService
from trackpay_ledger.services.payment_requests import PaymentRequestRepository
from trackpay_ledger.services.sessions import SessionRepository

logger = logging.getLogger(__name__)


class PaymentRepository(Protocol):
    """Persistence interface for payments."""

    def create_payment(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        session_ids: list[UUID],
        amount: float,
        method: str,
        paid_at: datetime,
    ) -> PaymentRecord:
        """Insert a payment row and return it."""

    def delete_payment(self, payment_id: UUID) -> None:
        """Remove a payment inserted by a failed settlement."""

    def list_payments(self, client_id: UUID) -> list[PaymentRecord]:
        """Return a client's payments, newest first."""


@dataclass
class SettlementService:
    """Records payments and moves the settled sessions to paid."""

    payment_repository: PaymentRepository
    session_repository: SessionRepository
    request_repository: PaymentRequestRepository
    money_state_service: MoneyStateService
    activity_service: ActivityService
    clock: Clock = field(default_factory=SystemClock)

    def mark_paid(  # noqa: PLR0913
        self,
        client_id: UUID,
        session_ids: list[UUID],
        amount: float,
        method: str,
        provider_id: UUID,
    ) -> PaymentRecord:
        """Settle the named sessions with a single payment.

        The amount may be less than the sessions' total (a partial payment
        toward the client's balance) but never more than the balance. Every
        named session is closed regardless of the amount.
        """
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            raise NoEligibleSessionsError("No sessions to settle")
        if method not in PAYMENT_METHODS:
            raise ValidationError("Unknown payment method", method=method)
        if not math.isfinite(amount):
            raise ValidationError("Payment amount must be a number", amount=str(amount))
        amount_cents = to_cents(amount)
        if amount_cents <= 0:
            raise ValidationError("Payment amount must be positive", amount=amount)

        sessions = self._load_outstanding(client_id, ids)
        balance_cents = self.money_state_service.outstanding_balance_cents(client_id)
        if amount_cents > balance_cents:
            raise ValidationError(
                "Payment exceeds the outstanding balance",
                amount=amount,
                balance=balance_cents / 100,
            )
        settled_amount = amount_cents / 100
        previous = {session.id: session.status for session in sessions}
        person_hours = sum(session.billable_person_hours() for session in sessions)

        with compensating("mark_paid") as undo:
            payment = self.payment_repository.create_payment(
                client_id=client_id,
                provider_id=provider_id,
                session_ids=ids,
                amount=settled_amount,
                method=method,
                paid_at=self.clock.now(),
            )
            undo.push(
                "delete payment",
                lambda: self.payment_repository.delete_payment(payment.id),
            )
            moved = self.session_repository.transition_sessions(
                ids, sorted(OUTSTANDING_STATUSES), PAID
            )
            undo.push("restore sessions", lambda: self._restore(moved, previous))
            if len(moved) != len(ids):
                raise InvalidStateError(
                    "Sessions changed while recording payment",
                    session_ids=[str(item) for item in ids if item not in moved],
                )
            approved = self._approve_settled_requests(client_id)
            undo.push("reopen requests", lambda: self._reopen(approved))
            self.activity_service.record(
                client_id,
                provider_id,
                PaymentCompleted(
                    payment_id=payment.id,
                    session_ids=tuple(ids),
                    amount=settled_amount,
                    method=method,
                    session_count=len(ids),
                    person_hours=person_hours,
                ),
            )
        logger.info(
            "Payment recorded",
            extra={
                "payment_id": str(payment.id),
                "client_id": str(client_id),
                "amount": settled_amount,
                "method": method,
            },
        )
        return payment

    def list_payments(self, client_id: UUID) -> list[PaymentRecord]:
        """Return a client's payments, newest first."""
        return self.payment_repository.list_payments(client_id)

    def _load_outstanding(
        self, client_id: UUID, ids: list[UUID]
    ) -> list[SessionRecord]:
        found = {
            session.id: session
            for session in self.session_repository.get_sessions(ids)
        }
        missing = [str(session_id) for session_id in ids if session_id not in found]
        if missing:
            raise NotFoundError("Sessions not found", session_ids=missing)
        sessions = [found[session_id] for session_id in ids]
        foreign = [str(s.id) for s in sessions if s.client_id != client_id]
        if foreign:
            raise ValidationError(
                "Sessions belong to another client", session_ids=foreign
            )
        closed = {str(s.id): s.status for s in sessions if not s.is_outstanding}
        if closed:
            raise InvalidStateError(
                "Only unpaid or requested sessions can be settled", statuses=closed
            )
        return sessions

    def _approve_settled_requests(self, client_id: UUID) -> list[UUID]:
        """Approve pending requests whose sessions are now all paid."""
        pending = self.request_repository.list_requests(client_id, [PENDING])
        if not pending:
            return []
        paid_ids = {
            session.id
            for session in self.session_repository.list_sessions(
                [client_id], statuses=[PAID]
            )
        }
        approved: list[UUID] = []
        for request in pending:
            if not set(request.session_ids) <= paid_ids:
                continue
            if self.request_repository.set_request_status(
                request.id, APPROVED, PENDING
            ):
                approved.append(request.id)
        return approved

    def _restore(self, session_ids: list[UUID], previous: dict[UUID, str]) -> None:
        for session_id in session_ids:
            self.session_repository.restore_session_status(
                session_id, previous[session_id]
            )

    def _reopen(self, request_ids: list[UUID]) -> None:
        for request_id in request_ids:
            self.request_repository.set_request_status(request_id, PENDING, APPROVED)
