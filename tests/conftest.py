"""Shared test fixtures."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from trackpay_ledger.config import Settings
from trackpay_ledger.containers import AppContainer
from trackpay_ledger.domain.activities import (
    ActivityData,
    ActivityFilter,
    ActivityRecord,
)
from trackpay_ledger.domain.errors import AlreadyRequestedError
from trackpay_ledger.domain.models import ClientRecord
from trackpay_ledger.domain.payments import (
    PENDING,
    PaymentRecord,
    PaymentRequestBatch,
)
from trackpay_ledger.domain.sessions import ACTIVE, UNPAID, SessionRecord
from trackpay_ledger.services.activities import ActivityRepository, ActivityService
from trackpay_ledger.services.cache import InMemoryCache
from trackpay_ledger.services.guards import InFlightGuard
from trackpay_ledger.services.money_state import MoneyStateService
from trackpay_ledger.services.payment_requests import (
    PaymentRequestRepository,
    PaymentRequestService,
)
from trackpay_ledger.services.sessions import (
    ClientDirectory,
    SessionRepository,
    SessionService,
)
from trackpay_ledger.services.settlements import PaymentRepository, SettlementService

START = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    """Clock that only moves when told to."""

    current: datetime = START

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


@dataclass
class FailureInjector:
    """Raises a queued exception the next time a named method runs."""

    failures: dict[str, Exception] = field(default_factory=dict)

    def fail_on(self, method: str, error: Exception) -> None:
        self.failures[method] = error

    def check(self, method: str) -> None:
        error = self.failures.pop(method, None)
        if error is not None:
            raise error


@dataclass
class InMemoryClientDirectory(ClientDirectory):
    """In-memory client directory for tests."""

    clients: dict[UUID, ClientRecord] = field(default_factory=dict)

    def add(self, hourly_rate: float | None = 20.0) -> UUID:
        client_id = uuid4()
        self.clients[client_id] = ClientRecord(id=client_id, hourly_rate=hourly_rate)
        return client_id

    def get_client(self, client_id: UUID) -> ClientRecord | None:
        return self.clients.get(client_id)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository with conditional writes."""

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    faults: FailureInjector = field(default_factory=FailureInjector)

    def create_session(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        start_time: datetime,
        hourly_rate: float,
        crew_size: int,
    ) -> SessionRecord:
        self.faults.check("create_session")
        session = SessionRecord(
            id=uuid4(),
            client_id=client_id,
            provider_id=provider_id,
            start_time=start_time,
            hourly_rate=hourly_rate,
            crew_size=crew_size,
            status=ACTIVE,
        )
        self.sessions[session.id] = session
        return session

    def add(self, session: SessionRecord) -> SessionRecord:
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def get_sessions(self, session_ids: list[UUID]) -> list[SessionRecord]:
        return [self.sessions[item] for item in session_ids if item in self.sessions]

    def list_sessions(
        self,
        client_ids: list[UUID],
        provider_id: UUID | None = None,
        statuses: list[str] | None = None,
    ) -> list[SessionRecord]:
        self.faults.check("list_sessions")
        matches = [
            session
            for session in self.sessions.values()
            if session.client_id in client_ids
            and (provider_id is None or session.provider_id == provider_id)
            and (statuses is None or session.status in statuses)
        ]
        return sorted(matches, key=lambda item: item.start_time, reverse=True)

    def update_active_crew_size(
        self, session_id: UUID, crew_size: int
    ) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        if session is None or session.status != ACTIVE:
            return None
        self.sessions[session_id] = replace(session, crew_size=crew_size)
        return self.sessions[session_id]

    def complete_session(  # noqa: PLR0913
        self,
        session_id: UUID,
        end_time: datetime,
        duration_hours: float,
        person_hours: float,
        amount: float,
    ) -> SessionRecord | None:
        self.faults.check("complete_session")
        session = self.sessions.get(session_id)
        if session is None or session.status != ACTIVE:
            return None
        self.sessions[session_id] = replace(
            session,
            status=UNPAID,
            end_time=end_time,
            duration_hours=duration_hours,
            person_hours=person_hours,
            amount=amount,
        )
        return self.sessions[session_id]

    def transition_sessions(
        self, session_ids: list[UUID], from_statuses: list[str], to_status: str
    ) -> list[UUID]:
        self.faults.check("transition_sessions")
        moved: list[UUID] = []
        for session_id in session_ids:
            session = self.sessions.get(session_id)
            if session is not None and session.status in from_statuses:
                self.sessions[session_id] = replace(session, status=to_status)
                moved.append(session_id)
        return moved

    def restore_session_status(self, session_id: UUID, status: str) -> None:
        self.sessions[session_id] = replace(self.sessions[session_id], status=status)

    def reopen_session(self, session_id: UUID) -> None:
        self.sessions[session_id] = replace(
            self.sessions[session_id],
            status=ACTIVE,
            end_time=None,
            duration_hours=None,
            person_hours=None,
            amount=None,
        )

    def delete_session(self, session_id: UUID) -> None:
        self.sessions.pop(session_id, None)


@dataclass
class InMemoryPaymentRequestRepository(PaymentRequestRepository):
    """In-memory request repository enforcing one pending request per client."""

    requests: dict[UUID, PaymentRequestBatch] = field(default_factory=dict)
    enforce_unique_pending: bool = True
    faults: FailureInjector = field(default_factory=FailureInjector)

    def create_request(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        session_ids: list[UUID],
        total_amount: float,
        total_person_hours: float,
        created_at: datetime,
    ) -> PaymentRequestBatch:
        self.faults.check("create_request")
        if self.enforce_unique_pending and self.list_requests(client_id, [PENDING]):
            raise AlreadyRequestedError("duplicate pending request")
        request = PaymentRequestBatch(
            id=uuid4(),
            client_id=client_id,
            provider_id=provider_id,
            session_ids=tuple(session_ids),
            total_amount=total_amount,
            total_person_hours=total_person_hours,
            status=PENDING,
            created_at=created_at,
        )
        self.requests[request.id] = request
        return request

    def add(self, request: PaymentRequestBatch) -> PaymentRequestBatch:
        self.requests[request.id] = request
        return request

    def list_requests(
        self, client_id: UUID, statuses: list[str] | None = None
    ) -> list[PaymentRequestBatch]:
        self.faults.check("list_requests")
        matches = [
            request
            for request in self.requests.values()
            if request.client_id == client_id
            and (statuses is None or request.status in statuses)
        ]
        return sorted(matches, key=lambda item: item.created_at, reverse=True)

    def set_request_status(
        self, request_id: UUID, status: str, expected_status: str
    ) -> bool:
        request = self.requests.get(request_id)
        if request is None or request.status != expected_status:
            return False
        self.requests[request_id] = replace(request, status=status)
        return True


@dataclass
class InMemoryPaymentRepository(PaymentRepository):
    """In-memory payment repository for tests."""

    payments: dict[UUID, PaymentRecord] = field(default_factory=dict)
    faults: FailureInjector = field(default_factory=FailureInjector)

    def create_payment(  # noqa: PLR0913
        self,
        client_id: UUID,
        provider_id: UUID,
        session_ids: list[UUID],
        amount: float,
        method: str,
        paid_at: datetime,
    ) -> PaymentRecord:
        self.faults.check("create_payment")
        payment = PaymentRecord(
            id=uuid4(),
            client_id=client_id,
            provider_id=provider_id,
            session_ids=tuple(session_ids),
            amount=amount,
            method=method,
            paid_at=paid_at,
        )
        self.payments[payment.id] = payment
        return payment

    def delete_payment(self, payment_id: UUID) -> None:
        self.payments.pop(payment_id, None)

    def list_payments(self, client_id: UUID) -> list[PaymentRecord]:
        matches = [p for p in self.payments.values() if p.client_id == client_id]
        return sorted(matches, key=lambda item: item.paid_at, reverse=True)


@dataclass
class InMemoryActivityRepository(ActivityRepository):
    """In-memory journal; sequence numbers count up from 1."""

    activities: list[ActivityRecord] = field(default_factory=list)
    faults: FailureInjector = field(default_factory=FailureInjector)

    def append_activity(
        self,
        client_id: UUID,
        provider_id: UUID,
        timestamp: datetime,
        data: ActivityData,
    ) -> ActivityRecord:
        self.faults.check("append_activity")
        activity = ActivityRecord(
            id=uuid4(),
            sequence=len(self.activities) + 1,
            client_id=client_id,
            provider_id=provider_id,
            timestamp=timestamp,
            data=data,
        )
        self.activities.append(activity)
        return activity

    def list_activities(self, activity_filter: ActivityFilter) -> list[ActivityRecord]:
        return [
            activity
            for activity in self.activities
            if (
                activity_filter.client_id is None
                or activity.client_id == activity_filter.client_id
            )
            and (
                activity_filter.provider_id is None
                or activity.provider_id == activity_filter.provider_id
            )
            and (not activity_filter.types or activity.type in activity_filter.types)
        ]


@dataclass
class Ledger:
    """Services wired over in-memory repositories."""

    clock: FakeClock
    clients: InMemoryClientDirectory
    sessions: InMemorySessionRepository
    requests: InMemoryPaymentRequestRepository
    payments: InMemoryPaymentRepository
    activities: InMemoryActivityRepository
    activity_service: ActivityService
    session_service: SessionService
    money_state_service: MoneyStateService
    payment_request_service: PaymentRequestService
    settlement_service: SettlementService
    provider_id: UUID = field(default_factory=uuid4)

    def run_session(
        self, client_id: UUID, hours: float, crew_size: int = 1
    ) -> SessionRecord:
        """Start a session, let ``hours`` pass and end it."""
        session = self.session_service.start_session(
            self.provider_id, client_id, crew_size
        )
        self.clock.advance(hours=hours)
        return self.session_service.end_session(session.id)

    def unpaid_session(
        self, client_id: UUID, amount: float, person_hours: float = 1.0
    ) -> SessionRecord:
        """Insert a finished unpaid session with a fixed amount."""
        self.clock.advance(minutes=1)
        return self.sessions.add(
            SessionRecord(
                id=uuid4(),
                client_id=client_id,
                provider_id=self.provider_id,
                start_time=self.clock.now(),
                hourly_rate=amount / person_hours,
                crew_size=1,
                status=UNPAID,
                end_time=self.clock.now(),
                duration_hours=person_hours,
                person_hours=person_hours,
                amount=amount,
            )
        )


def build_ledger() -> Ledger:
    clock = FakeClock()
    clients = InMemoryClientDirectory()
    sessions = InMemorySessionRepository()
    requests = InMemoryPaymentRequestRepository()
    payments = InMemoryPaymentRepository()
    activities = InMemoryActivityRepository()
    activity_service = ActivityService(activities, clock)
    money_state_service = MoneyStateService(sessions, requests)
    return Ledger(
        clock=clock,
        clients=clients,
        sessions=sessions,
        requests=requests,
        payments=payments,
        activities=activities,
        activity_service=activity_service,
        session_service=SessionService(sessions, clients, activity_service, clock),
        money_state_service=money_state_service,
        payment_request_service=PaymentRequestService(
            requests, sessions, activity_service, clock
        ),
        settlement_service=SettlementService(
            payments, sessions, requests, money_state_service, activity_service, clock
        ),
    )


@pytest.fixture
def ledger() -> Ledger:
    return build_ledger()


@pytest.fixture
def ledger_log(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    """Capture ``trackpay_ledger`` records even after handlers are configured."""
    logger = logging.getLogger("trackpay_ledger")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger="trackpay_ledger")
    yield caplog
    logger.removeHandler(caplog.handler)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key=(
            "eyJhbGciOiJIUzI1NiJ9.eyJyb2xlIjoic2VydmljZV9yb2xlIn0.signature"
        ),
        api_token="api-token",
    )


@pytest.fixture
def container(settings: Settings, ledger: Ledger) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_service=ledger.session_service,
        money_state_service=ledger.money_state_service,
        payment_request_service=ledger.payment_request_service,
        settlement_service=ledger.settlement_service,
        activity_service=ledger.activity_service,
        cache=InMemoryCache(),
        guard=InFlightGuard(),
        close_resources=close_resources,
    )
