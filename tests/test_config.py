"""Tests for Settings and ReconcileConfig."""

from __future__ import annotations

import pytest

from clip_todo.config import ReconcileConfig, Settings
from clip_todo.reconciliation.models import SourceType


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.retention_days == 60
        assert s.prune_interval_seconds == 86400
        assert s.store_backend == "memory"
        assert s.clip_base_url == "https://clips.twitch.tv/create"
        assert s.exempt_linked_from_retention is False

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RETENTION_DAYS", "30")
        monkeypatch.setenv("TWITCH_CLIENT_ID", "abc")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.retention_days == 30
        assert s.twitch_client_id == "abc"


class TestReconcileConfig:
    def test_defaults(self) -> None:
        cfg = ReconcileConfig()
        assert cfg.retention_days == 60
        assert cfg.exempt_linked is False
        assert cfg.conflict_retries == 1

    def test_from_settings(self) -> None:
        s = Settings(  # type: ignore[call-arg]
            _env_file=None, retention_days=7, exempt_linked_from_retention=True
        )
        cfg = ReconcileConfig.from_settings(s)
        assert cfg.retention_days == 7
        assert cfg.exempt_linked is True

    def test_immutable(self) -> None:
        cfg = ReconcileConfig()
        with pytest.raises(AttributeError):
            cfg.retention_days = 1  # type: ignore[misc]


class TestSourceType:
    def test_values(self) -> None:
        assert SourceType.LIVE.value == "live"
        assert SourceType.VOD.value == "vod"

    def test_from_string(self) -> None:
        assert SourceType("live") is SourceType.LIVE

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            SourceType("clip")
