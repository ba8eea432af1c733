"""Translation of Supabase client failures into ledger errors."""

from collections.abc import Iterator
from contextlib import contextmanager

import httpx
from postgrest.exceptions import APIError

from trackpay_ledger.domain.errors import ConflictError, StoreError, StoreTimeoutError

UNIQUE_VIOLATION = "23505"


@contextmanager
def store_call(
    operation: str, conflict: type[ConflictError] = ConflictError
) -> Iterator[None]:
    """Run a PostgREST call, mapping its failures onto the error taxonomy.

    A unique violation means a store-level idempotency rule rejected the
    write, so it surfaces as ``conflict``. Timeouts leave the outcome unknown
    and are kept apart from other transport failures.
    """
    try:
        yield
    except APIError as exc:
        if exc.code == UNIQUE_VIOLATION:
            raise conflict(f"{operation} rejected by uniqueness rule") from exc
        raise StoreError(f"{operation} failed: {exc.message}") from exc
    except httpx.TimeoutException as exc:
        raise StoreTimeoutError(f"{operation} timed out") from exc
    except httpx.HTTPError as exc:
        raise StoreError(f"{operation} failed: {exc}") from exc
