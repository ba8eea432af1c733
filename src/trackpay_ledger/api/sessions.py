"""Session lifecycle endpoints."""

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
from trackpay_ledger.api.responses import session_to_json
from trackpay_ledger.api.schemas import (
    CrewSizeBody,
    EndSessionBody,
    StartSessionBody,
)
from trackpay_ledger.domain.errors import NotFoundError

router = APIRouter(tags=["sessions"], dependencies=[Depends(require_api_token)])


@router.post("/clients/{client_id}/sessions", status_code=status.HTTP_201_CREATED)
async def start_session(
    client_id: UUID, body: StartSessionBody, request: Request
) -> dict[str, object]:
    """Start a session for a client."""
    container = get_container(request)
    with container.guard.hold(f"start_session:{body.provider_id}:{client_id}"):
        session = await call_mutation(
            container,
            client_cache_prefix(client_id),
            container.session_service.start_session,
            body.provider_id,
            client_id,
            body.crew_size,
        )
    return {"session": session_to_json(session)}


@router.get("/clients/{client_id}/sessions")
async def list_sessions(
    client_id: UUID, request: Request, provider_id: UUID | None = None
) -> dict[str, object]:
    """Return a client's sessions, newest first."""
    container = get_container(request)
    sessions = await call_store(
        container, container.session_service.list_sessions, client_id, provider_id
    )
    return {"sessions": [session_to_json(session) for session in sessions]}


@router.get("/clients/{client_id}/sessions/active")
async def get_active_session(
    client_id: UUID, request: Request, provider_id: UUID | None = None
) -> dict[str, object]:
    """Return the running session for a client, or null."""
    container = get_container(request)
    session = await call_store(
        container,
        container.session_service.get_active_session,
        client_id,
        provider_id,
    )
    return {"session": session_to_json(session) if session else None}


@router.post("/sessions/{session_id}/end")
async def end_session(
    session_id: UUID, request: Request, body: EndSessionBody | None = None
) -> dict[str, object]:
    """Stop a running session and fix its amount."""
    container = get_container(request)
    person_hours = body.person_hours if body else None
    service = container.session_service
    with container.guard.hold(f"end_session:{session_id}"):
        current = await call_store(container, service.get_session, session_id)
        if current is None:
            raise NotFoundError("Session not found", session_id=str(session_id))
        session = await call_mutation(
            container,
            client_cache_prefix(current.client_id),
            service.end_session,
            session_id,
            person_hours,
        )
    return {"session": session_to_json(session)}


@router.patch("/sessions/{session_id}/crew")
async def update_crew_size(
    session_id: UUID, body: CrewSizeBody, request: Request
) -> dict[str, object]:
    """Change the crew size of a running session."""
    container = get_container(request)
    session = await call_store(
        container,
        container.session_service.update_crew_size,
        session_id,
        body.crew_size,
    )
    return {"session": session_to_json(session)}
