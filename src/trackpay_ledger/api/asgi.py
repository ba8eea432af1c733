"""ASGI entrypoint for the ledger API."""

from trackpay_ledger.api.app import create_app
from trackpay_ledger.containers import build_container

app = create_app(build_container())
