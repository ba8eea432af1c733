"""Supabase-backed client directory."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from trackpay_ledger.adapters.supabase_errors import store_call
from trackpay_ledger.domain.models import ClientRecord
from trackpay_ledger.services.sessions import ClientDirectory


@dataclass
class SupabaseClientDirectory(ClientDirectory):
    """Reads client rates from the users table."""

    client: Client

    def get_client(self, client_id: UUID) -> ClientRecord | None:
        with store_call("get client"):
            response = (
                self.client.table("trackpay_users")
                .select("id, hourly_rate")
                .eq("id", str(client_id))
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        row = response.data[0]
        rate = row.get("hourly_rate")
        return ClientRecord(
            id=UUID(row["id"]),
            hourly_rate=float(rate) if rate is not None else None,
        )
