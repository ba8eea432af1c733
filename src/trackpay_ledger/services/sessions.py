"""Session lifecycle: start, crew edits, and termination."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from trackpay_ledger.domain.activities import SessionEnded, SessionStarted
from trackpay_ledger.domain.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from trackpay_ledger.domain.models import ClientRecord
from trackpay_ledger.domain.money import SECONDS_PER_HOUR, round_cents
from trackpay_ledger.domain.sessions import ACTIVE, SessionRecord
from trackpay_ledger.services.activities import ActivityService
from trackpay_ledger.services.clock import Clock, SystemClock
from trackpay_ledger.services.compensation import compensating

logger = logging.getLogger(__name__)

DEFAULT_HOURLY_RATE = 50.0


class ClientDirectory(Protocol):
    """Read access to client billing data."""

    def get_client(self, client_id: UUID) -> ClientRecord | None:
        """Return a client by id, if present."""


class SessionRepository(Protocol):
    """Persistence interface for work sessions."""

    def create_session(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        start_time: datetime,
        hourly_rate: float,
        crew_size: int,
    ) -> SessionRecord:
        """Insert an active session and return it."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def get_sessions(self, session_ids: list[UUID]) -> list[SessionRecord]:
        """Return the sessions that exist among ``session_ids``."""

    def list_sessions(
        self,
        client_ids: list[UUID],
        provider_id: UUID | None = None,
        statuses: list[str] | None = None,
    ) -> list[SessionRecord]:
        """Return sessions for the clients, newest start first."""

    def update_active_crew_size(
        self, session_id: UUID, crew_size: int
    ) -> SessionRecord | None:
        """Set crew size only while the session is active."""

    def complete_session(  # noqa: PLR0913
        self,
        session_id: UUID,
        end_time: datetime,
        duration_hours: float,
        person_hours: float,
        amount: float,
    ) -> SessionRecord | None:
        """Move an active session to unpaid with its final numbers.

        Returns None when the session was no longer active at write time.
        """

    def transition_sessions(
        self, session_ids: list[UUID], from_statuses: list[str], to_status: str
    ) -> list[UUID]:
        """Set ``to_status`` where status is in ``from_statuses``.

        Returns the ids that were actually updated.
        """

    def restore_session_status(self, session_id: UUID, status: str) -> None:
        """Put a session back to ``status`` while undoing a failed operation."""

    def reopen_session(self, session_id: UUID) -> None:
        """Undo a termination that failed to commit as a whole."""

    def delete_session(self, session_id: UUID) -> None:
        """Remove a session inserted by a failed operation."""


@dataclass
class SessionService:
    """Owns the active -> unpaid part of the session lifecycle."""

    session_repository: SessionRepository
    client_directory: ClientDirectory
    activity_service: ActivityService
    clock: Clock = field(default_factory=SystemClock)
    default_hourly_rate: float = DEFAULT_HOURLY_RATE

    def start_session(
        self, provider_id: UUID, client_id: UUID, crew_size: int = 1
    ) -> SessionRecord:
        """Start work for a client, snapshotting the client's hourly rate."""
        if crew_size < 1:
            raise ValidationError("Crew size must be at least 1", crew_size=crew_size)
        client = self.client_directory.get_client(client_id)
        if client is None:
            raise NotFoundError("Client not found", client_id=str(client_id))
        existing = self.get_active_session(client_id, provider_id)
        if existing is not None:
            raise ConflictError(
                "Client already has an active session", existing=existing
            )

        hourly_rate = (
            client.hourly_rate
            if client.hourly_rate is not None
            else self.default_hourly_rate
        )
        with compensating("start_session") as undo:
            session = self.session_repository.create_session(
                client_id=client_id,
                provider_id=provider_id,
                start_time=self.clock.now(),
                hourly_rate=hourly_rate,
                crew_size=crew_size,
            )
            undo.push(
                "delete session",
                lambda: self.session_repository.delete_session(session.id),
            )
            self._ensure_single_active(session)
            self.activity_service.record(
                client_id,
                provider_id,
                SessionStarted(
                    session_id=session.id,
                    start_time=session.start_time,
                    crew_size=session.crew_size,
                ),
            )
        logger.info(
            "Session started",
            extra={"session_id": str(session.id), "client_id": str(client_id)},
        )
        return session

    def end_session(
        self, session_id: UUID, person_hours_override: float | None = None
    ) -> SessionRecord:
        """Stop work and fix duration, person-hours and amount for good."""
        session = self._require_session(session_id)
        if not session.is_active:
            raise InvalidStateError(
                "Only an active session can be ended", status=session.status
            )
        if person_hours_override is not None and (
            not math.isfinite(person_hours_override) or person_hours_override < 0
        ):
            raise ValidationError(
                "Person-hours must be a non-negative number",
                person_hours=str(person_hours_override),
            )

        end_time = self.clock.now()
        elapsed = max((end_time - session.start_time).total_seconds(), 0.0)
        duration_hours = elapsed / SECONDS_PER_HOUR
        person_hours = (
            person_hours_override
            if person_hours_override is not None
            else duration_hours * session.crew_size
        )
        amount = round_cents(person_hours * session.hourly_rate)

        with compensating("end_session") as undo:
            ended = self.session_repository.complete_session(
                session_id,
                end_time=end_time,
                duration_hours=duration_hours,
                person_hours=person_hours,
                amount=amount,
            )
            if ended is None:
                raise InvalidStateError(
                    "Session was ended concurrently", session_id=str(session_id)
                )
            undo.push(
                "reopen session",
                lambda: self.session_repository.reopen_session(session_id),
            )
            self.activity_service.record(
                ended.client_id,
                ended.provider_id,
                SessionEnded(
                    session_id=ended.id,
                    end_time=end_time,
                    duration_hours=duration_hours,
                    person_hours=person_hours,
                    crew_size=ended.crew_size,
                    amount=amount,
                ),
            )
        logger.info(
            "Session ended",
            extra={"session_id": str(session_id), "amount": amount},
        )
        return ended

    def update_crew_size(self, session_id: UUID, crew_size: int) -> SessionRecord:
        """Change crew size of a running session."""
        if crew_size < 1:
            raise ValidationError("Crew size must be at least 1", crew_size=crew_size)
        session = self._require_session(session_id)
        if not session.is_active:
            raise InvalidStateError(
                "Crew size is fixed once a session has ended", status=session.status
            )
        updated = self.session_repository.update_active_crew_size(
            session_id, crew_size
        )
        if updated is None:
            raise InvalidStateError(
                "Session was ended concurrently", session_id=str(session_id)
            )
        return updated

    def get_active_session(
        self, client_id: UUID, provider_id: UUID | None = None
    ) -> SessionRecord | None:
        """Return the running session for a client, if any."""
        active = self.session_repository.list_sessions(
            [client_id], provider_id=provider_id, statuses=[ACTIVE]
        )
        return active[0] if active else None

    def get_active_client_ids(self, client_ids: list[UUID]) -> set[UUID]:
        """Return which of the clients have a running session, in one query."""
        if not client_ids:
            return set()
        active = self.session_repository.list_sessions(client_ids, statuses=[ACTIVE])
        return {session.client_id for session in active}

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id."""
        return self.session_repository.get_session(session_id)

    def list_sessions(
        self, client_id: UUID, provider_id: UUID | None = None
    ) -> list[SessionRecord]:
        """Return a client's sessions, newest first."""
        return self.session_repository.list_sessions(
            [client_id], provider_id=provider_id
        )

    def _require_session(self, session_id: UUID) -> SessionRecord:
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found", session_id=str(session_id))
        return session

    def _ensure_single_active(self, session: SessionRecord) -> None:
        """Re-check after insert; the earliest active session wins a race."""
        active = self.session_repository.list_sessions(
            [session.client_id], provider_id=session.provider_id, statuses=[ACTIVE]
        )
        if len(active) <= 1:
            return
        winner = min(active, key=lambda item: (item.start_time, str(item.id)))
        if winner.id != session.id:
            raise ConflictError(
                "Client already has an active session", existing=winner
            )
