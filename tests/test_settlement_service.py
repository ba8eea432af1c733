"""Tests for payment settlement."""

from uuid import uuid4

import pytest

from tests.conftest import Ledger
from trackpay_ledger.domain.errors import (
    InvalidStateError,
    NoEligibleSessionsError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from trackpay_ledger.domain.payments import APPROVED, PENDING
from trackpay_ledger.domain.sessions import PAID, REQUESTED, UNPAID


def test_partial_payment_closes_session_for_good(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    session = ledger.unpaid_session(client_id, 100.0)

    payment = ledger.settlement_service.mark_paid(
        client_id, [session.id], 40.0, "cash", ledger.provider_id
    )

    assert payment.amount == 40.0
    assert ledger.sessions.sessions[session.id].status == PAID
    with pytest.raises(InvalidStateError):
        ledger.settlement_service.mark_paid(
            client_id, [session.id], 60.0, "cash", ledger.provider_id
        )
    assert len(ledger.payments.payments) == 1


def test_overpayment_by_one_cent_is_rejected(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    first = ledger.unpaid_session(client_id, 30.10)
    second = ledger.unpaid_session(client_id, 45.25)
    ids = [first.id, second.id]

    with pytest.raises(ValidationError):
        ledger.settlement_service.mark_paid(
            client_id, ids, 75.36, "zelle", ledger.provider_id
        )
    assert not ledger.payments.payments

    payment = ledger.settlement_service.mark_paid(
        client_id, ids, 75.35, "zelle", ledger.provider_id
    )
    assert payment.amount == 75.35
    summary = ledger.money_state_service.get_client_summary(client_id)
    assert summary.total_unpaid_balance == 0.0
    assert summary.total_earned == 75.35
    assert summary.payment_status == "paid"


def test_unpaid_session_can_be_settled_without_request(ledger: Ledger) -> None:
    client_id = ledger.clients.add(hourly_rate=20.0)
    session = ledger.run_session(client_id, hours=1.5, crew_size=2)

    ledger.settlement_service.mark_paid(
        client_id, [session.id], 60.0, "paypal", ledger.provider_id
    )

    assert ledger.sessions.sessions[session.id].status == PAID


@pytest.mark.parametrize("amount", [0.0, -5.0, 0.004])
def test_non_positive_amount_is_rejected(ledger: Ledger, amount: float) -> None:
    client_id = ledger.clients.add()
    session = ledger.unpaid_session(client_id, 10.0)

    with pytest.raises(ValidationError):
        ledger.settlement_service.mark_paid(
            client_id, [session.id], amount, "cash", ledger.provider_id
        )


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_amount_is_rejected(ledger: Ledger, amount: float) -> None:
    client_id = ledger.clients.add()
    session = ledger.unpaid_session(client_id, 10.0)

    with pytest.raises(ValidationError):
        ledger.settlement_service.mark_paid(
            client_id, [session.id], amount, "cash", ledger.provider_id
        )

    assert ledger.sessions.sessions[session.id].status == UNPAID
    assert ledger.payments.payments == {}


def test_unknown_method_is_rejected(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    session = ledger.unpaid_session(client_id, 10.0)

    with pytest.raises(ValidationError):
        ledger.settlement_service.mark_paid(
            client_id, [session.id], 10.0, "venmo", ledger.provider_id
        )


def test_empty_settlement_is_rejected(ledger: Ledger) -> None:
    with pytest.raises(NoEligibleSessionsError):
        ledger.settlement_service.mark_paid(
            ledger.clients.add(), [], 10.0, "cash", ledger.provider_id
        )


def test_unknown_session_is_not_found(ledger: Ledger) -> None:
    with pytest.raises(NotFoundError):
        ledger.settlement_service.mark_paid(
            ledger.clients.add(), [uuid4()], 10.0, "cash", ledger.provider_id
        )


def test_active_session_cannot_be_settled(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    ledger.unpaid_session(client_id, 50.0)
    active = ledger.session_service.start_session(ledger.provider_id, client_id)

    with pytest.raises(InvalidStateError):
        ledger.settlement_service.mark_paid(
            client_id, [active.id], 10.0, "cash", ledger.provider_id
        )


def test_foreign_session_is_rejected(ledger: Ledger) -> None:
    owner = ledger.clients.add()
    session = ledger.unpaid_session(owner, 10.0)

    with pytest.raises(ValidationError):
        ledger.settlement_service.mark_paid(
            ledger.clients.add(), [session.id], 10.0, "cash", ledger.provider_id
        )


def test_settling_requested_sessions_approves_request(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    first = ledger.unpaid_session(client_id, 30.0)
    second = ledger.unpaid_session(client_id, 45.0)
    request = ledger.payment_request_service.request_payment(
        client_id, [first.id, second.id], ledger.provider_id
    )

    ledger.settlement_service.mark_paid(
        client_id, [first.id, second.id], 75.0, "bank_transfer", ledger.provider_id
    )

    assert ledger.requests.requests[request.id].status == APPROVED
    assert ledger.payment_request_service.get_pending_payment_request(client_id) is None


def test_partially_settled_request_stays_pending(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    first = ledger.unpaid_session(client_id, 30.0)
    second = ledger.unpaid_session(client_id, 45.0)
    request = ledger.payment_request_service.request_payment(
        client_id, [first.id, second.id], ledger.provider_id
    )

    ledger.settlement_service.mark_paid(
        client_id, [first.id], 30.0, "cash", ledger.provider_id
    )

    assert ledger.requests.requests[request.id].status == PENDING
    assert ledger.sessions.sessions[second.id].status == REQUESTED


def test_failed_settlement_restores_everything(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    unpaid = ledger.unpaid_session(client_id, 20.0)
    requested = ledger.unpaid_session(client_id, 30.0)
    request = ledger.payment_request_service.request_payment(
        client_id, [requested.id], ledger.provider_id
    )
    ledger.activities.faults.fail_on("append_activity", StoreError("journal down"))

    with pytest.raises(StoreError):
        ledger.settlement_service.mark_paid(
            client_id, [unpaid.id, requested.id], 50.0, "cash", ledger.provider_id
        )

    assert ledger.sessions.sessions[unpaid.id].status == UNPAID
    assert ledger.sessions.sessions[requested.id].status == REQUESTED
    assert ledger.requests.requests[request.id].status == PENDING
    assert not ledger.payments.payments


def test_store_failure_on_balance_check_propagates(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    session = ledger.unpaid_session(client_id, 10.0)
    ledger.sessions.faults.fail_on("list_sessions", StoreError("down"))

    with pytest.raises(StoreError):
        ledger.settlement_service.mark_paid(
            client_id, [session.id], 10.0, "cash", ledger.provider_id
        )

    assert ledger.sessions.sessions[session.id].status == UNPAID


def test_payment_activity_and_listing(ledger: Ledger) -> None:
    client_id = ledger.clients.add()
    first = ledger.unpaid_session(client_id, 30.0, person_hours=1.5)
    second = ledger.unpaid_session(client_id, 45.0, person_hours=2.0)

    payment = ledger.settlement_service.mark_paid(
        client_id, [first.id, second.id], 50.0, "other", ledger.provider_id
    )

    (activity,) = ledger.activity_service.get_activities()
    assert activity.type == "payment_completed"
    assert activity.data.payment_id == payment.id
    assert activity.data.amount == 50.0
    assert activity.data.session_count == 2
    assert activity.data.person_hours == pytest.approx(3.5)
    assert ledger.settlement_service.list_payments(client_id) == [payment]
