"""Time source for services."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Interface for reading the current time."""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC time."""


@dataclass
class SystemClock(Clock):
    """Clock backed by the system time."""

    def now(self) -> datetime:
        """Return the current UTC time."""
        return datetime.now(tz=UTC)
