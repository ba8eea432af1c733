"""Append-only activity journal."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import NAMESPACE_URL, UUID, uuid5

from trackpay_ledger.domain.activities import (
    ActivityData,
    ActivityFilter,
    ActivityRecord,
    PaymentCompleted,
    PaymentRequested,
    SessionEnded,
    SessionStarted,
    activity_sort_key,
)
from trackpay_ledger.domain.payments import PaymentRecord, PaymentRequestBatch
from trackpay_ledger.domain.sessions import SessionRecord
from trackpay_ledger.services.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

_TIMELINE_NAMESPACE = uuid5(NAMESPACE_URL, "trackpay-ledger/activities")


class ActivityRepository(Protocol):
    """Persistence interface for the activity journal."""

    def append_activity(
        self,
        client_id: UUID,
        provider_id: UUID,
        timestamp: datetime,
        data: ActivityData,
    ) -> ActivityRecord:
        """Insert a journal entry and return it with its sequence number."""

    def list_activities(self, activity_filter: ActivityFilter) -> list[ActivityRecord]:
        """Return entries matching the filter ordered by timestamp, sequence."""


@dataclass
class ActivityService:
    """Writes and reads the activity journal."""

    repository: ActivityRepository
    clock: Clock = field(default_factory=SystemClock)

    def record(
        self, client_id: UUID, provider_id: UUID, data: ActivityData
    ) -> ActivityRecord:
        """Append an activity stamped with the current time."""
        activity = self.repository.append_activity(
            client_id=client_id,
            provider_id=provider_id,
            timestamp=self.clock.now(),
            data=data,
        )
        logger.info(
            "Recorded activity",
            extra={"activity_type": data.type, "client_id": str(client_id)},
        )
        return activity

    def get_activities(
        self, activity_filter: ActivityFilter | None = None
    ) -> list[ActivityRecord]:
        """Return journal entries, oldest first unless asked otherwise."""
        resolved = activity_filter or ActivityFilter()
        activities = sorted(
            self.repository.list_activities(resolved), key=activity_sort_key
        )
        if resolved.newest_first:
            activities.reverse()
        if resolved.limit is not None:
            activities = activities[: resolved.limit]
        return activities


def rebuild_timeline(
    sessions: Iterable[SessionRecord],
    requests: Iterable[PaymentRequestBatch],
    payments: Iterable[PaymentRecord],
) -> list[ActivityRecord]:
    """Reconstruct journal entries from ledger rows.

    Used when the journal is missing entries. Ids are derived from the source
    row so rebuilding twice yields the same records. Expired requests never
    became visible to the client and are skipped.
    """
    drafts: list[tuple[datetime, UUID, UUID, ActivityData, str]] = []
    session_hours: dict[UUID, float] = {}
    for session in sessions:
        session_hours[session.id] = session.billable_person_hours()
        drafts.append(
            (
                session.start_time,
                session.client_id,
                session.provider_id,
                SessionStarted(
                    session_id=session.id,
                    start_time=session.start_time,
                    crew_size=session.crew_size,
                ),
                f"start:{session.id}",
            )
        )
        if session.end_time is not None:
            drafts.append(
                (
                    session.end_time,
                    session.client_id,
                    session.provider_id,
                    SessionEnded(
                        session_id=session.id,
                        end_time=session.end_time,
                        duration_hours=session.duration_hours or 0.0,
                        person_hours=session.billable_person_hours(),
                        crew_size=session.crew_size,
                        amount=session.amount or 0.0,
                    ),
                    f"end:{session.id}",
                )
            )
    for request in requests:
        if request.status == "expired":
            continue
        drafts.append(
            (
                request.created_at,
                request.client_id,
                request.provider_id,
                PaymentRequested(
                    batch_id=request.id,
                    session_ids=request.session_ids,
                    amount=request.total_amount,
                    session_count=len(request.session_ids),
                    person_hours=request.total_person_hours,
                ),
                f"request:{request.id}",
            )
        )
    for payment in payments:
        drafts.append(
            (
                payment.paid_at,
                payment.client_id,
                payment.provider_id,
                PaymentCompleted(
                    payment_id=payment.id,
                    session_ids=payment.session_ids,
                    amount=payment.amount,
                    method=payment.method,
                    session_count=len(payment.session_ids),
                    person_hours=sum(
                        session_hours.get(session_id, 0.0)
                        for session_id in payment.session_ids
                    ),
                ),
                f"payment:{payment.id}",
            )
        )

    drafts.sort(key=lambda draft: draft[0])
    return [
        ActivityRecord(
            id=uuid5(_TIMELINE_NAMESPACE, source),
            sequence=index,
            client_id=client_id,
            provider_id=provider_id,
            timestamp=timestamp,
            data=data,
        )
        for index, (timestamp, client_id, provider_id, data, source) in enumerate(
            drafts
        )
    ]
