"""Balance, payment request and payment endpoints."""

from __future__ import annotations

from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Request, status

from trackpay_ledger.api.dependencies import (
    call_mutation,
    call_store,
    client_cache_prefix,
    get_container,
    require_api_token,
)
from trackpay_ledger.api.responses import (
    deletion_check_to_json,
    money_state_to_json,
    payment_to_json,
    request_to_json,
    summary_to_json,
)
from trackpay_ledger.api.schemas import MarkPaidBody, PaymentRequestBody
from trackpay_ledger.config import parse_client_ids
from trackpay_ledger.domain.errors import ValidationError

router = APIRouter(tags=["billing"], dependencies=[Depends(require_api_token)])


@router.get("/clients/{client_id}/summary")
async def get_client_summary(client_id: UUID, request: Request) -> dict[str, object]:
    """Return a client's balance summary."""
    container = get_container(request)
    key = f"{client_cache_prefix(client_id)}summary"
    cached = container.cache.get(key)
    if cached is not None:
        return cached
    summary = await call_store(
        container, container.money_state_service.get_client_summary, client_id
    )
    payload = summary_to_json(summary)
    container.cache.set(key, payload, container.settings.summary_cache_ttl_seconds)
    return payload


@router.get("/summaries")
async def get_client_summaries(
    request: Request, client_ids: str | None = None
) -> dict[str, object]:
    """Return summaries for a comma-separated list of clients."""
    container = get_container(request)
    try:
        ids = parse_client_ids(client_ids)
    except ValueError as exc:
        raise ValidationError("Malformed client id list") from exc
    summaries = await call_store(
        container,
        container.money_state_service.get_client_summaries_for_clients,
        ids,
    )
    return {"summaries": [summary_to_json(summary) for summary in summaries]}


@router.get("/clients/{client_id}/money-state")
async def get_client_money_state(
    client_id: UUID, request: Request, provider_id: UUID | None = None
) -> dict[str, object]:
    """Return balance, active flag and last pending request for a client."""
    container = get_container(request)
    key = f"{client_cache_prefix(client_id)}money-state:{provider_id or 'all'}"
    cached = container.cache.get(key)
    if cached is not None:
        return cached
    state = await call_store(
        container,
        container.money_state_service.get_client_money_state,
        client_id,
        provider_id,
    )
    payload = money_state_to_json(state)
    container.cache.set(key, payload, container.settings.summary_cache_ttl_seconds)
    return payload


@router.get("/clients/{client_id}/deletion-check")
async def get_deletion_blockers(
    client_id: UUID, provider_id: UUID, request: Request
) -> dict[str, object]:
    """Report whether the provider can remove this client."""
    container = get_container(request)
    check = await call_store(
        container,
        container.money_state_service.get_deletion_blockers,
        client_id,
        provider_id,
    )
    return deletion_check_to_json(check)


@router.post(
    "/clients/{client_id}/payment-requests", status_code=status.HTTP_201_CREATED
)
async def request_payment(
    client_id: UUID, body: PaymentRequestBody, request: Request
) -> dict[str, object]:
    """Create a pending payment request for the client."""
    container = get_container(request)
    service = container.payment_request_service
    prefix = client_cache_prefix(client_id)
    with container.guard.hold(f"request_payment:{client_id}"):
        if body.session_ids is None:
            batch = await call_mutation(
                container,
                prefix,
                service.request_payment_for_unpaid,
                client_id,
                body.provider_id,
            )
        else:
            batch = await call_mutation(
                container,
                prefix,
                service.request_payment,
                client_id,
                body.session_ids,
                body.provider_id,
            )
    return {"request": request_to_json(batch)}


@router.get("/clients/{client_id}/payment-requests")
async def list_payment_requests(
    client_id: UUID, request: Request
) -> dict[str, object]:
    """Return every payment request for a client, newest first."""
    container = get_container(request)
    batches = await call_store(
        container,
        container.payment_request_service.list_payment_requests,
        client_id,
    )
    return {"requests": [request_to_json(batch) for batch in batches]}


@router.get("/clients/{client_id}/payment-requests/pending")
async def get_pending_payment_request(
    client_id: UUID, request: Request
) -> dict[str, object]:
    """Return the client's pending request, or null."""
    container = get_container(request)
    batch = await call_store(
        container,
        container.payment_request_service.get_pending_payment_request,
        client_id,
    )
    return {"request": request_to_json(batch) if batch else None}


@router.post("/clients/{client_id}/payments", status_code=status.HTTP_201_CREATED)
async def mark_paid(
    client_id: UUID, body: MarkPaidBody, request: Request
) -> dict[str, object]:
    """Record a payment and close the named sessions."""
    container = get_container(request)
    with container.guard.hold(f"mark_paid:{client_id}"):
        payment = await call_mutation(
            container,
            client_cache_prefix(client_id),
            container.settlement_service.mark_paid,
            client_id,
            body.session_ids,
            body.amount,
            body.method,
            body.provider_id,
        )
    return {"payment": payment_to_json(payment)}


@router.get("/clients/{client_id}/payments")
async def list_payments(client_id: UUID, request: Request) -> dict[str, object]:
    """Return a client's payments, newest first."""
    container = get_container(request)
    payments = await call_store(
        container, container.settlement_service.list_payments, client_id
    )
    return {"payments": [payment_to_json(payment) for payment in payments]}
