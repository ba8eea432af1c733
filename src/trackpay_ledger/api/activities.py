"""Activity timeline endpoint."""

from __future__ import annotations

from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Request

from trackpay_ledger.api.dependencies import (
    call_store,
    get_container,
    require_api_token,
)
from trackpay_ledger.api.responses import activity_to_json
from trackpay_ledger.domain.activities import ACTIVITY_TYPES, ActivityFilter
from trackpay_ledger.domain.errors import ValidationError

router = APIRouter(tags=["activities"], dependencies=[Depends(require_api_token)])


@router.get("/activities")
async def get_activities(  # noqa: PLR0913
    request: Request,
    client_id: UUID | None = None,
    provider_id: UUID | None = None,
    types: str | None = None,
    limit: int | None = None,
    newest_first: bool = False,
) -> dict[str, object]:
    """Return journal entries, optionally filtered."""
    if limit is not None and limit < 0:
        raise ValidationError("Limit cannot be negative", limit=limit)
    container = get_container(request)
    activity_filter = ActivityFilter(
        client_id=client_id,
        provider_id=provider_id,
        types=_parse_types(types),
        limit=limit,
        newest_first=newest_first,
    )
    activities = await call_store(
        container, container.activity_service.get_activities, activity_filter
    )
    return {"activities": [activity_to_json(activity) for activity in activities]}


def _parse_types(raw: str | None) -> frozenset[str] | None:
    if not raw:
        return None
    types = frozenset(chunk.strip() for chunk in raw.split(",") if chunk.strip())
    unknown = sorted(types - set(ACTIVITY_TYPES))
    if unknown:
        raise ValidationError("Unknown activity type", types=unknown)
    return types or None
