"""Data models for captured moments and the VODs they reconcile against."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any


class SourceType(StrEnum):
    """Where a capture's timestamp came from."""

    LIVE = "live"
    VOD = "vod"


@dataclass(frozen=True)
class Capture:
    """A user-recorded timestamp bookmark.

    ``timestamp_seconds`` is relative to stream start for live captures and
    to VOD start for vod captures. A capture is linked once both ``vod_id``
    and ``vod_offset_seconds`` are set. ``revision`` is owned by the store
    and used for compare-and-set writes.
    """

    id: str
    streamer_id: str
    streamer_name: str
    source_type: SourceType
    timestamp_seconds: int
    recorded_at: datetime
    broadcast_id: str | None = None
    vod_id: str | None = None
    vod_offset_seconds: int | None = None
    memo: str | None = None
    revision: int = 0

    @property
    def is_linked(self) -> bool:
        return self.vod_id is not None and self.vod_offset_seconds is not None

    @property
    def is_pending(self) -> bool:
        """Live capture still waiting for its VOD."""
        return self.source_type is SourceType.LIVE and not self.is_linked

    def linked_to(self, vod_id: str, offset_seconds: int) -> Capture:
        return replace(self, vod_id=vod_id, vod_offset_seconds=offset_seconds)

    def with_memo(self, memo: str | None) -> Capture:
        return replace(self, memo=memo)

    def to_row(self) -> dict[str, Any]:
        """Serialise to a flat dict (Supabase row / JSON payload)."""
        return {
            "id": self.id,
            "streamer_id": self.streamer_id,
            "streamer_name": self.streamer_name,
            "source_type": self.source_type.value,
            "timestamp_seconds": self.timestamp_seconds,
            "recorded_at": self.recorded_at.isoformat(),
            "broadcast_id": self.broadcast_id,
            "vod_id": self.vod_id,
            "vod_offset_seconds": self.vod_offset_seconds,
            "memo": self.memo,
            "revision": self.revision,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Capture:
        return cls(
            id=str(row["id"]),
            streamer_id=row["streamer_id"],
            streamer_name=row["streamer_name"],
            source_type=SourceType(row["source_type"]),
            timestamp_seconds=int(row["timestamp_seconds"]),
            recorded_at=parse_instant(row["recorded_at"]),
            broadcast_id=row.get("broadcast_id"),
            vod_id=row.get("vod_id"),
            vod_offset_seconds=row.get("vod_offset_seconds"),
            memo=row.get("memo"),
            revision=int(row.get("revision") or 0),
        )


@dataclass(frozen=True)
class VodDescriptor:
    """A finalized VOD located by streamer and wall-clock window."""

    vod_id: str
    streamer_id: str
    started_at: datetime
    duration_seconds: int

    @property
    def ended_at(self) -> datetime:
        return self.started_at + timedelta(seconds=self.duration_seconds)


@dataclass(frozen=True)
class VodDescriptorWithSessionId(VodDescriptor):
    """A VOD that also carries the live session id it was recorded from."""

    stream_id: str


@dataclass(frozen=True)
class LinkedCapture:
    """A capture paired with its computed offset inside a VOD."""

    capture: Capture
    vod_offset_seconds: int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value: str | datetime) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        # Twitch and Postgres both emit a trailing "Z" on some paths.
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
