"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import ClientOptions, create_client

from trackpay_ledger.adapters.supabase_activity_repository import (
    SupabaseActivityRepository,
)
from trackpay_ledger.adapters.supabase_client_directory import SupabaseClientDirectory
from trackpay_ledger.adapters.supabase_payment_repository import (
    SupabasePaymentRepository,
)
from trackpay_ledger.adapters.supabase_payment_request_repository import (
    SupabasePaymentRequestRepository,
)
from trackpay_ledger.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from trackpay_ledger.config import Settings
from trackpay_ledger.services.activities import ActivityService
from trackpay_ledger.services.cache import Cache, InMemoryCache
from trackpay_ledger.services.guards import InFlightGuard
from trackpay_ledger.services.money_state import MoneyStateService
from trackpay_ledger.services.payment_requests import PaymentRequestService
from trackpay_ledger.services.sessions import SessionService
from trackpay_ledger.services.settlements import SettlementService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: SessionService
    money_state_service: MoneyStateService
    payment_request_service: PaymentRequestService
    settlement_service: SettlementService
    activity_service: ActivityService
    cache: Cache
    guard: InFlightGuard
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url,
        resolved_settings.supabase_service_key,
        options=ClientOptions(
            postgrest_client_timeout=resolved_settings.store_timeout_seconds
        ),
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    request_repository = SupabasePaymentRequestRepository(supabase_client)
    payment_repository = SupabasePaymentRepository(supabase_client)
    activity_service = ActivityService(SupabaseActivityRepository(supabase_client))
    session_service = SessionService(
        session_repository=session_repository,
        client_directory=SupabaseClientDirectory(supabase_client),
        activity_service=activity_service,
        default_hourly_rate=resolved_settings.default_hourly_rate,
    )
    money_state_service = MoneyStateService(session_repository, request_repository)
    payment_request_service = PaymentRequestService(
        request_repository=request_repository,
        session_repository=session_repository,
        activity_service=activity_service,
    )
    settlement_service = SettlementService(
        payment_repository=payment_repository,
        session_repository=session_repository,
        request_repository=request_repository,
        money_state_service=money_state_service,
        activity_service=activity_service,
    )
    cache = InMemoryCache()

    async def close_resources() -> None:
        cache.invalidate_prefix("")

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        money_state_service=money_state_service,
        payment_request_service=payment_request_service,
        settlement_service=settlement_service,
        activity_service=activity_service,
        cache=cache,
        guard=InFlightGuard(),
        close_resources=close_resources,
    )
