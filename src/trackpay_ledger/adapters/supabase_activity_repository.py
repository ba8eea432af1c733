"""Supabase repository for the activity journal."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from trackpay_ledger.adapters.supabase_errors import store_call
from trackpay_ledger.domain.activities import (
    ActivityData,
    ActivityFilter,
    ActivityRecord,
    payload_from_json,
    payload_to_json,
)
from trackpay_ledger.services.activities import ActivityRepository

_TABLE = "trackpay_activities"
_COLUMNS = "id, seq, type, client_id, provider_id, session_id, data, created_at"


@dataclass
class SupabaseActivityRepository(ActivityRepository):
    """Supabase implementation for journal entries."""

    client: Client

    def append_activity(
        self,
        client_id: UUID,
        provider_id: UUID,
        timestamp: datetime,
        data: ActivityData,
    ) -> ActivityRecord:
        """Insert a journal row; the store assigns ``seq``."""
        session_id = getattr(data, "session_id", None)
        with store_call("append activity"):
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "type": data.type,
                        "client_id": str(client_id),
                        "provider_id": str(provider_id),
                        "session_id": str(session_id) if session_id else None,
                        "data": payload_to_json(data),
                        "created_at": timestamp.isoformat(),
                    }
                )
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to append activity")
        return _parse_activity(response.data[0])

    def list_activities(self, activity_filter: ActivityFilter) -> list[ActivityRecord]:
        """Return matching journal rows."""
        with store_call("list activities"):
            query = self.client.table(_TABLE).select(_COLUMNS)
            if activity_filter.client_id is not None:
                query = query.eq("client_id", str(activity_filter.client_id))
            if activity_filter.provider_id is not None:
                query = query.eq("provider_id", str(activity_filter.provider_id))
            if activity_filter.types:
                query = query.in_("type", sorted(activity_filter.types))
            query = query.order("created_at", desc=activity_filter.newest_first)
            query = query.order("seq", desc=activity_filter.newest_first)
            if activity_filter.limit is not None:
                query = query.limit(activity_filter.limit)
            response = query.execute()
        return [_parse_activity(row) for row in response.data or []]


def _parse_activity(row: dict[str, object]) -> ActivityRecord:
    return ActivityRecord(
        id=UUID(str(row["id"])),
        sequence=int(row.get("seq") or 0),
        client_id=UUID(str(row["client_id"])),
        provider_id=UUID(str(row["provider_id"])),
        timestamp=datetime.fromisoformat(str(row["created_at"])),
        data=payload_from_json(str(row["type"]), dict(row.get("data") or {})),
    )
