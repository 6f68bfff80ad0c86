"""Pure matching rules linking a live capture to a VOD.

Two strategies exist. The precise match compares the capture's broadcast
id with the VOD's session id and is authoritative. The time-window match
is a fallback heuristic that checks whether the capture's wall-clock
instant falls inside the VOD's recording window (inclusive at both ends).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from clip_todo.reconciliation.models import (
    Capture,
    SourceType,
    VodDescriptor,
    VodDescriptorWithSessionId,
)

_ONE_SECOND = timedelta(seconds=1)


def match_by_session_id(capture: Capture, vod: VodDescriptorWithSessionId) -> bool:
    """Exact broadcast id / stream id equality for the same streamer."""
    if capture.source_type is not SourceType.LIVE:
        return False
    if capture.broadcast_id is None:
        return False
    if capture.streamer_id != vod.streamer_id:
        return False
    return capture.broadcast_id == vod.stream_id


def match_by_time_window(capture: Capture, vod: VodDescriptor) -> bool:
    """True if the capture was recorded while the VOD was being recorded."""
    if capture.source_type is not SourceType.LIVE:
        return False
    if capture.streamer_id != vod.streamer_id:
        return False
    return vod.started_at <= capture.recorded_at <= vod.ended_at


def matches(capture: Capture, vod: VodDescriptor) -> bool:
    """Match using the strategy the VOD variant supports."""
    if isinstance(vod, VodDescriptorWithSessionId) and capture.broadcast_id is not None:
        return match_by_session_id(capture, vod)
    return match_by_time_window(capture, vod)


def calculate_vod_offset(capture: Capture, vod_started_at: datetime) -> int:
    """Whole seconds from VOD start to the capture, clamped at zero."""
    return max(0, (capture.recorded_at - vod_started_at) // _ONE_SECOND)


def select_vod(capture: Capture, vods: Iterable[VodDescriptor]) -> VodDescriptor | None:
    """Pick the single VOD a capture belongs to from a catalog.

    A session id match wins outright. Otherwise, among VODs whose window
    contains the capture, the narrowest window wins and ties go to the
    most recently started VOD.
    """
    candidates: list[VodDescriptor] = []
    for vod in vods:
        if isinstance(vod, VodDescriptorWithSessionId) and match_by_session_id(capture, vod):
            return vod
        if matches(capture, vod):
            candidates.append(vod)

    if not candidates:
        return None
    return min(candidates, key=lambda v: (v.duration_seconds, -v.started_at.timestamp()))
