"""Money state aggregation for clients."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from uuid import UUID

from trackpay_ledger.domain.errors import StoreError
from trackpay_ledger.domain.money import (
    ClientSummary,
    DeletionCheck,
    MoneyState,
    PendingRequestRef,
    build_money_state,
    summarize_sessions,
    to_cents,
    zero_summary,
)
from trackpay_ledger.domain.payments import PENDING
from trackpay_ledger.domain.sessions import SessionRecord
from trackpay_ledger.services.payment_requests import PaymentRequestRepository
from trackpay_ledger.services.sessions import SessionRepository

logger = logging.getLogger(__name__)


@dataclass
class MoneyStateService:
    """Computes balances from session rows; holds no state of its own."""

    session_repository: SessionRepository
    request_repository: PaymentRequestRepository

    def get_client_summary(self, client_id: UUID) -> ClientSummary:
        """Return one client's summary, or a zero summary if the store fails."""
        try:
            sessions = self.session_repository.list_sessions([client_id])
        except StoreError:
            logger.exception(
                "Failed to load sessions for summary",
                extra={"client_id": str(client_id)},
            )
            return zero_summary(client_id)
        return summarize_sessions(client_id, sessions)

    def get_client_summaries_for_clients(
        self, client_ids: list[UUID]
    ) -> list[ClientSummary]:
        """Return summaries for many clients from a single session query."""
        if not client_ids:
            return []
        try:
            sessions = self.session_repository.list_sessions(list(client_ids))
        except StoreError:
            logger.exception(
                "Failed to load sessions for summaries",
                extra={"client_count": len(client_ids)},
            )
            return [zero_summary(client_id) for client_id in client_ids]
        grouped = _group_by_client(sessions)
        return [
            summarize_sessions(client_id, grouped.get(client_id, []))
            for client_id in client_ids
        ]

    def get_client_money_state(
        self, client_id: UUID, provider_id: UUID | None = None
    ) -> MoneyState:
        """Return balance, active flag and pending request for a client."""
        try:
            sessions = self.session_repository.list_sessions(
                [client_id], provider_id=provider_id
            )
            pending = self.request_repository.list_requests(client_id, [PENDING])
        except StoreError:
            logger.exception(
                "Failed to load money state", extra={"client_id": str(client_id)}
            )
            return build_money_state(zero_summary(client_id), False, None)
        summary = summarize_sessions(client_id, sessions)
        has_active = any(session.is_active for session in sessions)
        last_pending = (
            PendingRequestRef(
                id=pending[0].id,
                amount=pending[0].total_amount,
                created_at=pending[0].created_at,
            )
            if pending
            else None
        )
        return build_money_state(summary, has_active, last_pending)

    def outstanding_balance_cents(self, client_id: UUID) -> int:
        """Return the unpaid plus requested balance in cents.

        Unlike the display reads this propagates store failures, since it
        guards a write.
        """
        sessions = self.session_repository.list_sessions([client_id])
        return to_cents(summarize_sessions(client_id, sessions).total_unpaid_balance)

    def get_deletion_blockers(
        self, client_id: UUID, provider_id: UUID
    ) -> DeletionCheck:
        """Report whether the provider can drop this client relationship."""
        sessions = self.session_repository.list_sessions(
            [client_id], provider_id=provider_id
        )
        if any(session.is_active for session in sessions):
            return DeletionCheck(can_delete=False, reason="active_session")
        summary = summarize_sessions(client_id, sessions)
        if summary.total_unpaid_balance > 0:
            return DeletionCheck(
                can_delete=False,
                reason="unpaid_balance",
                unpaid_balance=summary.total_unpaid_balance,
            )
        pending = self.request_repository.list_requests(client_id, [PENDING])
        if any(request.provider_id == provider_id for request in pending):
            return DeletionCheck(can_delete=False, reason="payment_request")
        return DeletionCheck(can_delete=True)


def _group_by_client(
    sessions: list[SessionRecord],
) -> dict[UUID, list[SessionRecord]]:
    grouped: dict[UUID, list[SessionRecord]] = defaultdict(list)
    for session in sessions:
        grouped[session.client_id].append(session)
    return grouped
