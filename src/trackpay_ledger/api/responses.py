"""JSON shapes for ledger entities."""

from trackpay_ledger.domain.activities import ActivityRecord, payload_to_json
from trackpay_ledger.domain.money import ClientSummary, DeletionCheck, MoneyState
from trackpay_ledger.domain.payments import PaymentRecord, PaymentRequestBatch
from trackpay_ledger.domain.sessions import SessionRecord


def session_to_json(session: SessionRecord) -> dict[str, object]:
    return {
        "id": str(session.id),
        "client_id": str(session.client_id),
        "provider_id": str(session.provider_id),
        "status": session.status,
        "start_time": session.start_time.isoformat(),
        "end_time": session.end_time.isoformat() if session.end_time else None,
        "hourly_rate": session.hourly_rate,
        "crew_size": session.crew_size,
        "duration_hours": session.duration_hours,
        "person_hours": session.person_hours,
        "amount": session.amount,
    }


def request_to_json(request: PaymentRequestBatch) -> dict[str, object]:
    return {
        "id": str(request.id),
        "batch_id": str(request.batch_id),
        "client_id": str(request.client_id),
        "provider_id": str(request.provider_id),
        "session_ids": [str(session_id) for session_id in request.session_ids],
        "total_amount": request.total_amount,
        "total_person_hours": request.total_person_hours,
        "status": request.status,
        "created_at": request.created_at.isoformat(),
    }


def payment_to_json(payment: PaymentRecord) -> dict[str, object]:
    return {
        "id": str(payment.id),
        "client_id": str(payment.client_id),
        "provider_id": str(payment.provider_id),
        "session_ids": [str(session_id) for session_id in payment.session_ids],
        "amount": payment.amount,
        "method": payment.method,
        "paid_at": payment.paid_at.isoformat(),
    }


def summary_to_json(summary: ClientSummary) -> dict[str, object]:
    return {
        "client_id": str(summary.client_id),
        "total_person_hours": summary.total_person_hours,
        "unpaid_person_hours": summary.unpaid_person_hours,
        "requested_person_hours": summary.requested_person_hours,
        "total_duration_hours": summary.total_duration_hours,
        "unpaid_duration_hours": summary.unpaid_duration_hours,
        "requested_duration_hours": summary.requested_duration_hours,
        "unpaid_balance": summary.unpaid_balance,
        "requested_balance": summary.requested_balance,
        "total_unpaid_balance": summary.total_unpaid_balance,
        "total_earned": summary.total_earned,
        "payment_status": summary.payment_status,
        "session_count": summary.session_count,
        "unpaid_session_count": summary.unpaid_session_count,
        "has_unpaid_sessions": summary.has_unpaid_sessions,
    }


def money_state_to_json(state: MoneyState) -> dict[str, object]:
    pending = state.last_pending_request
    return {
        "client_id": str(state.client_id),
        "balance_due_cents": state.balance_due_cents,
        "unpaid_duration_sec": state.unpaid_duration_sec,
        "has_active_session": state.has_active_session,
        "payment_status": state.payment_status,
        "last_pending_request": (
            {
                "id": str(pending.id),
                "amount": pending.amount,
                "created_at": pending.created_at.isoformat(),
            }
            if pending
            else None
        ),
    }


def deletion_check_to_json(check: DeletionCheck) -> dict[str, object]:
    return {
        "can_delete": check.can_delete,
        "reason": check.reason,
        "unpaid_balance": check.unpaid_balance,
    }


def activity_to_json(activity: ActivityRecord) -> dict[str, object]:
    return {
        "id": str(activity.id),
        "sequence": activity.sequence,
        "type": activity.type,
        "client_id": str(activity.client_id),
        "provider_id": str(activity.provider_id),
        "timestamp": activity.timestamp.isoformat(),
        "data": payload_to_json(activity.data),
    }


def entity_to_json(entity: object) -> dict[str, object] | None:
    """Serialize whatever a conflict reported as the existing entity."""
    if isinstance(entity, SessionRecord):
        return session_to_json(entity)
    if isinstance(entity, PaymentRequestBatch):
        return request_to_json(entity)
    return None
