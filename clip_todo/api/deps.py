"""Process-wide service instances shared by the routes and the scheduler."""

from __future__ import annotations

from functools import lru_cache

from clip_todo.config import ReconcileConfig, settings
from clip_todo.records.service import RecordService
from clip_todo.reconciliation.service import ReconciliationService
from clip_todo.storage.store import get_capture_store
from clip_todo.twitch.client import TwitchClient


def get_record_service() -> RecordService:
    return RecordService(get_capture_store(), streams=get_vod_provider())


@lru_cache(maxsize=1)
def get_reconciliation_service() -> ReconciliationService:
    # Cached: the single-flight guards live on the instance.
    return ReconciliationService(get_capture_store(), ReconcileConfig.from_settings(settings))


@lru_cache(maxsize=1)
def get_vod_provider() -> TwitchClient | None:
    """Twitch client, or None when no credentials are configured."""
    if not settings.twitch_client_id or not settings.twitch_client_secret:
        return None
    return TwitchClient(settings)
