"""Pydantic models for request bodies."""

from uuid import UUID

from pydantic import BaseModel, Field


class StartSessionBody(BaseModel):
    """Body for starting a session."""

    provider_id: UUID
    crew_size: int = 1


class EndSessionBody(BaseModel):
    """Body for ending a session; person-hours may be given explicitly."""

    person_hours: float | None = Field(default=None, ge=0, allow_inf_nan=False)


class CrewSizeBody(BaseModel):
    crew_size: int


class PaymentRequestBody(BaseModel):
    """Body for a payment request.

    Omitting ``session_ids`` requests payment for every unpaid session the
    provider has with the client.
    """

    provider_id: UUID
    session_ids: list[UUID] | None = None


class MarkPaidBody(BaseModel):
    """Body for recording a payment."""

    provider_id: UUID
    session_ids: list[UUID]
    amount: float = Field(allow_inf_nan=False)
    method: str
