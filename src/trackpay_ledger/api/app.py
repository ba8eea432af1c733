"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from trackpay_ledger.api.activities import router as activities_router
from trackpay_ledger.api.billing import router as billing_router
from trackpay_ledger.api.responses import entity_to_json
from trackpay_ledger.api.sessions import router as sessions_router
from trackpay_ledger.app_logging import configure_logging
from trackpay_ledger.containers import AppContainer
from trackpay_ledger.domain.errors import (
    ConflictError,
    InvalidStateError,
    LedgerError,
    NoEligibleSessionsError,
    NotFoundError,
    StoreError,
    StoreTimeoutError,
    ValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (ValidationError, 422),
    (NoEligibleSessionsError, 422),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (ConflictError, 409),
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)
    app.include_router(billing_router)
    app.include_router(activities_router)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(_request: Request, exc: LedgerError) -> JSONResponse:
        content: dict[str, object] = {
            "error": exc.code,
            "detail": exc.message,
            **exc.details,
        }
        if isinstance(exc, ConflictError) and exc.existing is not None:
            content["existing"] = entity_to_json(exc.existing)
        return JSONResponse(status_code=_status_for(exc), content=content)

    @app.exception_handler(StoreError)
    async def store_error_handler(_request: Request, exc: StoreError) -> JSONResponse:
        if isinstance(exc, StoreTimeoutError):
            logger.warning("Ledger store timed out", extra={"error": str(exc)})
            status_code = status.HTTP_504_GATEWAY_TIMEOUT
        else:
            logger.error("Ledger store unavailable", extra={"error": str(exc)})
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(
            status_code=status_code, content={"error": exc.code, "detail": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def _status_for(exc: LedgerError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST
