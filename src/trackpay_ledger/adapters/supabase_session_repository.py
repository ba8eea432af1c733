"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from trackpay_ledger.adapters.supabase_errors import store_call
from trackpay_ledger.domain.sessions import ACTIVE, UNPAID, SessionRecord
from trackpay_ledger.services.sessions import SessionRepository

_TABLE = "trackpay_sessions"
_COLUMNS = (
    "id, client_id, provider_id, start_time, end_time, duration_hours, "
    "crew_size, person_hours, hourly_rate, amount_due, status"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for work sessions."""

    client: Client

    def create_session(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        start_time: datetime,
        hourly_rate: float,
        crew_size: int,
    ) -> SessionRecord:
        """Create an active session row and return it."""
        with store_call("create session"):
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "client_id": str(client_id),
                        "provider_id": str(provider_id),
                        "start_time": start_time.isoformat(),
                        "hourly_rate": hourly_rate,
                        "crew_size": crew_size,
                        "status": ACTIVE,
                    }
                )
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _parse_session(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        with store_call("get session"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("id", str(session_id))
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def get_sessions(self, session_ids: list[UUID]) -> list[SessionRecord]:
        """Return the sessions that exist among the given ids."""
        if not session_ids:
            return []
        with store_call("get sessions"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .in_("id", [str(session_id) for session_id in session_ids])
                .execute()
            )
        return [_parse_session(row) for row in response.data or []]

    def list_sessions(
        self,
        client_ids: list[UUID],
        provider_id: UUID | None = None,
        statuses: list[str] | None = None,
    ) -> list[SessionRecord]:
        """Return sessions for the clients, newest start first."""
        if not client_ids:
            return []
        with store_call("list sessions"):
            query = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .in_("client_id", [str(client_id) for client_id in client_ids])
            )
            if provider_id is not None:
                query = query.eq("provider_id", str(provider_id))
            if statuses:
                query = query.in_("status", list(statuses))
            response = query.order("start_time", desc=True).execute()
        return [_parse_session(row) for row in response.data or []]

    def update_active_crew_size(
        self, session_id: UUID, crew_size: int
    ) -> SessionRecord | None:
        """Set crew size only while the session is still active."""
        with store_call("update crew size"):
            response = (
                self.client.table(_TABLE)
                .update({"crew_size": crew_size, "updated_at": _now()})
                .eq("id", str(session_id))
                .eq("status", ACTIVE)
                .execute()
            )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def complete_session(  # noqa: PLR0913
        self,
        session_id: UUID,
        end_time: datetime,
        duration_hours: float,
        person_hours: float,
        amount: float,
    ) -> SessionRecord | None:
        """Close an active session; None when it was not active at write time."""
        with store_call("complete session"):
            response = (
                self.client.table(_TABLE)
                .update(
                    {
                        "end_time": end_time.isoformat(),
                        "duration_hours": duration_hours,
                        "person_hours": person_hours,
                        "amount_due": amount,
                        "status": UNPAID,
                        "updated_at": _now(),
                    }
                )
                .eq("id", str(session_id))
                .eq("status", ACTIVE)
                .execute()
            )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def transition_sessions(
        self, session_ids: list[UUID], from_statuses: list[str], to_status: str
    ) -> list[UUID]:
        """Move sessions still in ``from_statuses`` and return the moved ids."""
        if not session_ids:
            return []
        with store_call("transition sessions"):
            response = (
                self.client.table(_TABLE)
                .update({"status": to_status, "updated_at": _now()})
                .in_("id", [str(session_id) for session_id in session_ids])
                .in_("status", list(from_statuses))
                .execute()
            )
        return [UUID(row["id"]) for row in response.data or []]

    def restore_session_status(self, session_id: UUID, status: str) -> None:
        """Write a status back while undoing a failed operation."""
        with store_call("restore session status"):
            self.client.table(_TABLE).update(
                {"status": status, "updated_at": _now()}
            ).eq("id", str(session_id)).execute()

    def reopen_session(self, session_id: UUID) -> None:
        """Clear termination fields and make the session active again."""
        with store_call("reopen session"):
            self.client.table(_TABLE).update(
                {
                    "end_time": None,
                    "duration_hours": None,
                    "person_hours": None,
                    "amount_due": None,
                    "status": ACTIVE,
                    "updated_at": _now(),
                }
            ).eq("id", str(session_id)).execute()

    def delete_session(self, session_id: UUID) -> None:
        """Remove a session row."""
        with store_call("delete session"):
            self.client.table(_TABLE).delete().eq("id", str(session_id)).execute()


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


def _optional_float(value: object) -> float | None:
    return float(value) if value is not None else None


def _parse_session(row: dict[str, object]) -> SessionRecord:
    end_time = row.get("end_time")
    return SessionRecord(
        id=UUID(str(row["id"])),
        client_id=UUID(str(row["client_id"])),
        provider_id=UUID(str(row["provider_id"])),
        start_time=datetime.fromisoformat(str(row["start_time"])),
        hourly_rate=float(row.get("hourly_rate") or 0.0),
        crew_size=int(row.get("crew_size") or 1),
        status=row["status"],
        end_time=datetime.fromisoformat(str(end_time)) if end_time else None,
        duration_hours=_optional_float(row.get("duration_hours")),
        person_hours=_optional_float(row.get("person_hours")),
        amount=_optional_float(row.get("amount_due")),
    )
