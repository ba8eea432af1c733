"""Supabase repository for payment requests."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from trackpay_ledger.adapters.supabase_errors import store_call
from trackpay_ledger.domain.errors import AlreadyRequestedError
from trackpay_ledger.domain.payments import PENDING, PaymentRequestBatch
from trackpay_ledger.services.payment_requests import PaymentRequestRepository

_TABLE = "trackpay_requests"
_COLUMNS = (
    "id, client_id, provider_id, session_ids, amount, person_hours, status, "
    "created_at"
)


@dataclass
class SupabasePaymentRequestRepository(PaymentRequestRepository):
    """Supabase implementation for payment request batches."""

    client: Client

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

        The table carries a partial unique index on ``client_id`` for pending
        rows, so a concurrent duplicate fails here as ``AlreadyRequestedError``.
        """
        with store_call("create payment request", conflict=AlreadyRequestedError):
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "client_id": str(client_id),
                        "provider_id": str(provider_id),
                        "session_ids": [str(item) for item in session_ids],
                        "amount": total_amount,
                        "person_hours": total_person_hours,
                        "status": PENDING,
                        "created_at": created_at.isoformat(),
                    }
                )
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to create payment request")
        return _parse_request(response.data[0])

    def list_requests(
        self, client_id: UUID, statuses: list[str] | None = None
    ) -> list[PaymentRequestBatch]:
        """Return a client's requests, newest first."""
        with store_call("list payment requests"):
            query = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("client_id", str(client_id))
            )
            if statuses:
                query = query.in_("status", list(statuses))
            response = query.order("created_at", desc=True).execute()
        return [_parse_request(row) for row in response.data or []]

    def set_request_status(
        self, request_id: UUID, status: str, expected_status: str
    ) -> bool:
        """Conditionally update status; True when a row changed."""
        with store_call("update payment request"):
            response = (
                self.client.table(_TABLE)
                .update(
                    {"status": status, "updated_at": datetime.now(tz=UTC).isoformat()}
                )
                .eq("id", str(request_id))
                .eq("status", expected_status)
                .execute()
            )
        return bool(response.data)


def _parse_request(row: dict[str, object]) -> PaymentRequestBatch:
    return PaymentRequestBatch(
        id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        provider_id=UUID(str(row["provider_id"])),
        session_ids=tuple(UUID(str(item)) for item in row.get("session_ids") or []),
        total_amount=float(row.get("amount") or 0.0),
        total_person_hours=float(row.get("person_hours") or 0.0),
        status=row["status"],
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
