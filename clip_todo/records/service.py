"""Capture lifecycle operations used by the acquisition path and the panel."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from clip_todo.reconciliation.errors import ConflictError, TransientError, ValidationError
from clip_todo.reconciliation.models import Capture, SourceType, utcnow
from clip_todo.storage.store import CaptureStore

if TYPE_CHECKING:
    from clip_todo.twitch.client import LiveStream

logger = logging.getLogger(__name__)


class LiveStreamLookup(Protocol):
    """Finds the broadcast a streamer is currently live with."""

    def get_current_stream(self, streamer_id: str) -> LiveStream | None: ...


def normalize_streamer_id(streamer_id: str) -> str:
    """Canonical (lowercase, trimmed) streamer login."""
    return streamer_id.strip().lower()


class RecordService:
    """Create, read, annotate and delete captures in a ``CaptureStore``.

    With ``streams`` set, live captures that arrive without a broadcast id
    are stamped with the current stream id and the elapsed time since the
    stream started, which is more precise than the player UI.
    """

    def __init__(self, store: CaptureStore, streams: LiveStreamLookup | None = None) -> None:
        self._store = store
        self._streams = streams

    def create_capture(
        self,
        streamer_id: str,
        streamer_name: str,
        timestamp_seconds: int,
        source_type: SourceType | str = SourceType.LIVE,
        vod_id: str | None = None,
        broadcast_id: str | None = None,
        memo: str | None = None,
        now: datetime | None = None,
    ) -> Capture:
        """Store a new capture and return it.

        VOD-sourced captures already reference a finalized VOD, so they are
        stored linked with the player timestamp as the offset.

        Raises:
            ValidationError: Blank streamer id, negative timestamp, or a
                VOD-sourced capture without a ``vod_id``.
        """
        # Normalise to enum
        if isinstance(source_type, str):
            source_type = SourceType(source_type)

        canonical = normalize_streamer_id(streamer_id)
        if not canonical:
            raise ValidationError("streamer_id must not be empty")
        if timestamp_seconds < 0:
            raise ValidationError("timestamp_seconds must be >= 0")
        if source_type is SourceType.VOD and not vod_id:
            raise ValidationError("vod-sourced captures require a vod_id")

        recorded_at = now or utcnow()
        if source_type is SourceType.LIVE and not broadcast_id:
            stream = self._current_stream(canonical)
            if stream is not None:
                broadcast_id = stream.stream_id
                timestamp_seconds = stream.elapsed_seconds(recorded_at)

        capture = Capture(
            id=str(uuid.uuid4()),
            streamer_id=canonical,
            streamer_name=streamer_name.strip() or canonical,
            source_type=source_type,
            timestamp_seconds=int(timestamp_seconds),
            recorded_at=recorded_at,
            broadcast_id=broadcast_id or None,
            vod_id=vod_id if source_type is SourceType.VOD else None,
            vod_offset_seconds=int(timestamp_seconds) if source_type is SourceType.VOD else None,
            memo=_clean_memo(memo),
        )
        stored = self._store.insert(capture)
        logger.info(
            "Recorded %s capture %s for %s at %ds",
            source_type.value,
            stored.id,
            canonical,
            stored.timestamp_seconds,
        )
        return stored

    def _current_stream(self, streamer_id: str) -> LiveStream | None:
        if self._streams is None:
            return None
        try:
            return self._streams.get_current_stream(streamer_id)
        except TransientError:
            # Keep the player timestamp when Twitch is unreachable.
            logger.warning("Live stream lookup failed for %s", streamer_id, exc_info=True)
            return None

    def list_captures(self, streamer_id: str | None = None) -> list[Capture]:
        """All captures (newest first), optionally for one streamer."""
        captures = self._store.list()
        if streamer_id is not None:
            wanted = normalize_streamer_id(streamer_id)
            captures = [c for c in captures if c.streamer_id == wanted]
        return sorted(captures, key=lambda c: c.recorded_at, reverse=True)

    def get_capture(self, capture_id: str) -> Capture:
        return self._store.get(capture_id)

    def update_memo(self, capture_id: str, memo: str | None, retries: int = 1) -> Capture:
        """Attach or replace a capture's memo; a blank memo clears it."""
        for attempt in range(retries + 1):
            current = self._store.get(capture_id)
            try:
                return self._store.put(current.with_memo(_clean_memo(memo)))
            except ConflictError:
                if attempt == retries:
                    raise
        raise ConflictError(capture_id)

    def delete_capture(self, capture_id: str) -> None:
        """Explicit user deletion, linked or not."""
        self._store.delete(capture_id)
        logger.info("Deleted capture %s", capture_id)


def _clean_memo(memo: str | None) -> str | None:
    if memo is None:
        return None
    memo = memo.strip()
    return memo or None
