"""Shared request dependencies and helpers for the ledger routes."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from fastapi import Depends, Header, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from trackpay_ledger.domain.errors import StoreTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable

    from trackpay_ledger.containers import AppContainer

P = ParamSpec("P")
T = TypeVar("T")


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def _get_api_token(request: Request) -> str:
    return get_container(request).settings.api_token


async def require_api_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


async def call_store(
    container: AppContainer,
    func: Callable[P, T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Run a blocking service call off the event loop with a deadline.

    On timeout the worker thread may still finish its write, so the caller
    gets ``StoreTimeoutError`` (outcome unknown) rather than a failure.
    """
    try:
        return await asyncio.wait_for(
            run_in_threadpool(func, *args, **kwargs),
            timeout=container.settings.store_timeout_seconds,
        )
    except TimeoutError as exc:
        raise StoreTimeoutError("Ledger call timed out") from exc


async def call_mutation(
    container: AppContainer,
    cache_prefix: str,
    func: Callable[P, T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Run a write through ``call_store`` and drop the client's cached reads.

    The prefix is invalidated once the worker thread finishes as well as when
    the request returns, so a write that outlives its deadline still clears
    whatever a re-fetch cached in the meantime.
    """

    def run() -> T:
        try:
            return func(*args, **kwargs)
        finally:
            container.cache.invalidate_prefix(cache_prefix)

    try:
        return await call_store(container, run)
    finally:
        container.cache.invalidate_prefix(cache_prefix)


def client_cache_prefix(client_id: object) -> str:
    return f"client:{client_id}:"
