from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # Twitch (app access token, client-credentials grant)
    twitch_client_id: str = ""
    twitch_client_secret: str = ""
    twitch_api_base_url: str = "https://api.twitch.tv/helix"
    twitch_auth_url: str = "https://id.twitch.tv/oauth2/token"
    http_timeout_seconds: float = 10.0

    # Storage
    store_backend: str = "memory"  # "memory" or "supabase"
    supabase_url: str = ""
    supabase_key: str = ""
    captures_table: str = "captures"

    # Reconciliation / retention
    retention_days: int = 60
    exempt_linked_from_retention: bool = False
    prune_interval_seconds: int = 24 * 60 * 60
    reconcile_interval_seconds: int = 15 * 60
    scheduler_enabled: bool = True

    # Clips
    clip_base_url: str = "https://clips.twitch.tv/create"

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@dataclass(frozen=True)
class ReconcileConfig:
    """Immutable knobs for a reconciliation service instance.

    Defaults mirror the project's current behaviour: 60 day retention that
    applies to linked and pending captures alike, one retry on a lost
    compare-and-set race.
    """

    retention_days: int = 60
    exempt_linked: bool = False
    conflict_retries: int = 1

    @classmethod
    def from_settings(cls, s: Settings) -> ReconcileConfig:
        return cls(
            retention_days=s.retention_days,
            exempt_linked=s.exempt_linked_from_retention,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
