"""Batch linking of captures against a single VOD."""

from __future__ import annotations

from collections.abc import Iterable

from clip_todo.reconciliation.matcher import calculate_vod_offset, matches
from clip_todo.reconciliation.models import Capture, LinkedCapture, VodDescriptor


def link_captures_to_vod(
    captures: Iterable[Capture],
    vod: VodDescriptor,
) -> list[LinkedCapture]:
    """Return every capture matching ``vod`` with its offset.

    Input order is preserved and non-matching captures are dropped. Captures
    with a broadcast id are matched precisely when the VOD carries a session
    id; the rest fall back to the VOD's time window.
    """
    return [
        LinkedCapture(capture=c, vod_offset_seconds=calculate_vod_offset(c, vod.started_at))
        for c in captures
        if matches(c, vod)
    ]
