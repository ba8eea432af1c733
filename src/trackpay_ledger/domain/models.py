"""Domain models shared across the ledger."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class ClientRecord:
    """A client as seen by the ledger: identity and current billing rate."""

    id: UUID
    hourly_rate: float | None
