"""Payment request coordination: one pending request per client."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from trackpay_ledger.domain.activities import PaymentRequested
from trackpay_ledger.domain.errors import (
    AlreadyRequestedError,
    InvalidStateError,
    NoEligibleSessionsError,
    NotFoundError,
    ValidationError,
)
from trackpay_ledger.domain.money import round_cents
from trackpay_ledger.domain.payments import EXPIRED, PENDING, PaymentRequestBatch
from trackpay_ledger.domain.sessions import REQUESTED, UNPAID, SessionRecord
from trackpay_ledger.services.activities import ActivityService
from trackpay_ledger.services.clock import Clock, SystemClock
from trackpay_ledger.services.compensation import compensating
from trackpay_ledger.services.sessions import SessionRepository

logger = logging.getLogger(__name__)


class PaymentRequestRepository(Protocol):
    """Persistence interface for payment request batches."""

    def create_request(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        session_ids: list[UUID],
        total_amount: float,
        total_person_hours: float,
        created_at: datetime,
    ) -> PaymentRequestBatch:
        """Insert a pending request.

        Raises ``ConflictError`` when the store's uniqueness rule for pending
        requests rejects the insert.
        """

    def list_requests(
        self, client_id: UUID, statuses: list[str] | None = None
    ) -> list[PaymentRequestBatch]:
        """Return a client's requests, newest first."""

    def set_request_status(
        self, request_id: UUID, status: str, expected_status: str
    ) -> bool:
        """Set ``status`` only if the request is still ``expected_status``."""


@dataclass
class PaymentRequestService:
    """Batches unpaid sessions into a single pending request per client."""

    request_repository: PaymentRequestRepository
    session_repository: SessionRepository
    activity_service: ActivityService
    clock: Clock = field(default_factory=SystemClock)

    def request_payment(
        self, client_id: UUID, session_ids: list[UUID], provider_id: UUID
    ) -> PaymentRequestBatch:
        """Create a pending request covering the given unpaid sessions."""
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            raise NoEligibleSessionsError("No sessions to request payment for")
        existing = self.get_pending_payment_request(client_id)
        if existing is not None:
            raise AlreadyRequestedError(
                "A payment request is already pending", existing=existing
            )
        sessions = self._load_unpaid(client_id, ids)
        total_amount = round_cents(
            sum((session.amount or 0.0) for session in sessions)
        )
        total_person_hours = sum(
            session.billable_person_hours() for session in sessions
        )

        with compensating("request_payment") as undo:
            request = self.request_repository.create_request(
                client_id=client_id,
                provider_id=provider_id,
                session_ids=ids,
                total_amount=total_amount,
                total_person_hours=total_person_hours,
                created_at=self.clock.now(),
            )
            undo.push(
                "expire request",
                lambda: self.request_repository.set_request_status(
                    request.id, EXPIRED, PENDING
                ),
            )
            self._ensure_single_pending(request)
            moved = self.session_repository.transition_sessions(
                ids, [UNPAID], REQUESTED
            )
            undo.push("restore sessions", lambda: self._restore(moved, UNPAID))
            if len(moved) != len(ids):
                raise InvalidStateError(
                    "Sessions changed while requesting payment",
                    session_ids=[str(item) for item in ids if item not in moved],
                )
            self.activity_service.record(
                client_id,
                provider_id,
                PaymentRequested(
                    batch_id=request.id,
                    session_ids=tuple(ids),
                    amount=total_amount,
                    session_count=len(ids),
                    person_hours=total_person_hours,
                ),
            )
        logger.info(
            "Payment requested",
            extra={
                "request_id": str(request.id),
                "client_id": str(client_id),
                "amount": total_amount,
            },
        )
        return request

    def request_payment_for_unpaid(
        self, client_id: UUID, provider_id: UUID
    ) -> PaymentRequestBatch:
        """Request payment for every unpaid session the provider has."""
        existing = self.get_pending_payment_request(client_id)
        if existing is not None:
            raise AlreadyRequestedError(
                "A payment request is already pending", existing=existing
            )
        unpaid = self.session_repository.list_sessions(
            [client_id], provider_id=provider_id, statuses=[UNPAID]
        )
        if not unpaid:
            raise NoEligibleSessionsError("No unpaid sessions to request")
        return self.request_payment(
            client_id, [session.id for session in unpaid], provider_id
        )

    def get_pending_payment_request(
        self, client_id: UUID
    ) -> PaymentRequestBatch | None:
        """Return the client's pending request, if any."""
        pending = self.request_repository.list_requests(client_id, [PENDING])
        return pending[0] if pending else None

    def list_payment_requests(self, client_id: UUID) -> list[PaymentRequestBatch]:
        """Return every request for a client, newest first."""
        return self.request_repository.list_requests(client_id)

    def _load_unpaid(self, client_id: UUID, ids: list[UUID]) -> list[SessionRecord]:
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
        ineligible = {str(s.id): s.status for s in sessions if s.status != UNPAID}
        if ineligible:
            raise InvalidStateError(
                "Only unpaid sessions can be requested", statuses=ineligible
            )
        return sessions

    def _ensure_single_pending(self, request: PaymentRequestBatch) -> None:
        """Re-check after insert; the earliest pending request wins a race."""
        pending = self.request_repository.list_requests(request.client_id, [PENDING])
        if len(pending) <= 1:
            return
        winner = min(pending, key=lambda item: (item.created_at, str(item.id)))
        if winner.id != request.id:
            raise AlreadyRequestedError(
                "A payment request is already pending", existing=winner
            )

    def _restore(self, session_ids: list[UUID], status: str) -> None:
        for session_id in session_ids:
            self.session_repository.restore_session_status(session_id, status)
