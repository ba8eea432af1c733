"""Application configuration."""

import os
from uuid import UUID

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_token: str
    default_hourly_rate: float = 50.0
    store_timeout_seconds: float = 5.0
    summary_cache_ttl_seconds: int = 30
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_client_ids(raw: str | None) -> list[UUID]:
    """Parse a comma-separated list of client ids, keeping order.

    Blank chunks are skipped and duplicates dropped; a malformed id raises
    ``ValueError``.
    """
    if raw is None:
        return []
    ids: list[UUID] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        client_id = UUID(value)
        if client_id not in ids:
            ids.append(client_id)
    return ids
