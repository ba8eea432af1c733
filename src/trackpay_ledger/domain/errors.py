"""Ledger error taxonomy.

Every error carries a machine-readable ``code`` so callers branch on type or
code, never on message text. Domain errors describe a rejected operation;
``StoreError`` describes a transport failure whose outcome may be unknown.
"""


class LedgerError(Exception):
    """Base class for rejected ledger operations."""

    code = "ledger_error"

    def __init__(self, message: str, **details: object) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """Malformed input: bad amount, crew size, method or ownership."""

    code = "validation_error"


class NotFoundError(LedgerError):
    """A referenced session, client or request does not exist."""

    code = "not_found"


class InvalidStateError(LedgerError):
    """The operation violates the session or request state machine."""

    code = "invalid_state"


class ConflictError(LedgerError):
    """An idempotency guard tripped; the operation is already in progress."""

    code = "already_in_progress"

    def __init__(
        self, message: str, existing: object | None = None, **details: object
    ) -> None:
        super().__init__(message, **details)
        self.existing = existing


class AlreadyRequestedError(ConflictError):
    """A pending payment request already exists for the client."""

    code = "already_requested"


class NoEligibleSessionsError(LedgerError):
    """Nothing to request or settle."""

    code = "no_eligible_sessions"


class StoreError(Exception):
    """The backing store failed to answer."""

    code = "store_unavailable"


class StoreTimeoutError(StoreError):
    """The store did not answer in time; the outcome is unknown."""

    code = "outcome_unknown"
