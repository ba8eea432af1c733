"""Domain models for payment requests and payments."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

RequestStatus = Literal["pending", "approved", "expired"]
PaymentMethod = Literal["cash", "zelle", "paypal", "bank_transfer", "other"]

PENDING = "pending"
APPROVED = "approved"
EXPIRED = "expired"

PAYMENT_METHODS = frozenset({"cash", "zelle", "paypal", "bank_transfer", "other"})


@dataclass(frozen=True)
class PaymentRequestBatch:
    """An outstanding ask for money covering a set of unpaid sessions."""

    id: UUID
    client_id: UUID
    provider_id: UUID
    session_ids: tuple[UUID, ...]
    total_amount: float
    total_person_hours: float
    status: RequestStatus
    created_at: datetime

    @property
    def batch_id(self) -> UUID:
        return self.id


@dataclass(frozen=True)
class PaymentRecord:
    """Money received against a set of sessions."""

    id: UUID
    client_id: UUID
    provider_id: UUID
    session_ids: tuple[UUID, ...]
    amount: float
    method: PaymentMethod
    paid_at: datetime
