"""Tests for the money formulas."""

from uuid import uuid4

import pytest

from tests.conftest import START
from trackpay_ledger.domain.money import (
    derive_payment_status,
    round_cents,
    summarize_sessions,
    to_cents,
)
from trackpay_ledger.domain.sessions import UNPAID, SessionRecord


@pytest.mark.parametrize(
    ("value", "cents"),
    [(0.125, 13), (2.675, 268), (1.005, 101), (-0.125, -13), (75.35, 7535)],
)
def test_to_cents_rounds_half_up(value: float, cents: int) -> None:
    assert to_cents(value) == cents
    assert round_cents(value) == cents / 100


def test_payment_status_precedence() -> None:
    assert derive_payment_status(1, 3) == "unpaid"
    assert derive_payment_status(0, 3) == "requested"
    assert derive_payment_status(0, 0) == "paid"


def test_legacy_rows_fall_back_to_duration_times_crew() -> None:
    client_id = uuid4()
    legacy = SessionRecord(
        id=uuid4(),
        client_id=client_id,
        provider_id=uuid4(),
        start_time=START,
        hourly_rate=20.0,
        crew_size=3,
        status=UNPAID,
        duration_hours=2.0,
        amount=120.0,
    )

    summary = summarize_sessions(client_id, [legacy])

    assert summary.unpaid_person_hours == 6.0
    assert summary.unpaid_duration_hours == 2.0
    assert summary.unpaid_balance == 120.0
