"""Supabase repository for payments."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from trackpay_ledger.adapters.supabase_errors import store_call
from trackpay_ledger.domain.payments import PaymentRecord
from trackpay_ledger.services.settlements import PaymentRepository

_TABLE = "trackpay_payments"
_COLUMNS = "id, client_id, provider_id, session_ids, amount, method, paid_at"


@dataclass
class SupabasePaymentRepository(PaymentRepository):
    """Supabase implementation for payments."""

    client: Client

    def create_payment(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        session_ids: list[UUID],
        amount: float,
        method: str,
        paid_at: datetime,
    ) -> PaymentRecord:
        """Create a payment row and return it."""
        with store_call("create payment"):
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "client_id": str(client_id),
                        "provider_id": str(provider_id),
                        "session_ids": [str(item) for item in session_ids],
                        "amount": amount,
                        "method": method,
                        "paid_at": paid_at.isoformat(),
                    }
                )
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to create payment")
        return _parse_payment(response.data[0])

    def delete_payment(self, payment_id: UUID) -> None:
        """Remove a payment row."""
        with store_call("delete payment"):
            self.client.table(_TABLE).delete().eq("id", str(payment_id)).execute()

    def list_payments(self, client_id: UUID) -> list[PaymentRecord]:
        """Return a client's payments, newest first."""
        with store_call("list payments"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("client_id", str(client_id))
                .order("paid_at", desc=True)
                .execute()
            )
        return [_parse_payment(row) for row in response.data or []]


def _parse_payment(row: dict[str, object]) -> PaymentRecord:
    return PaymentRecord(
        id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        provider_id=UUID(str(row["provider_id"])),
        session_ids=tuple(UUID(str(item)) for item in row.get("session_ids") or []),
        amount=float(row.get("amount") or 0.0),
        method=row.get("method") or "other",
        paid_at=datetime.fromisoformat(str(row["paid_at"])),
    )
