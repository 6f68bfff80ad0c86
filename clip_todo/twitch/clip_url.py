"""Clip-creation URL construction for linked captures."""

from __future__ import annotations

from urllib.parse import urlencode

from clip_todo.config import settings
from clip_todo.reconciliation.models import Capture

# Twitch clip creation URL format:
# https://clips.twitch.tv/create?broadcasterLogin={login}&offsetSeconds={s}&vodID={vod}
# or with broadcastId instead of vodID.


def build_clip_creation_url(
    broadcaster_login: str,
    offset_seconds: int,
    vod_id: str | None = None,
    broadcast_id: str | None = None,
    base_url: str | None = None,
) -> str:
    """Build the clip editor URL, preferring ``vod_id`` over ``broadcast_id``."""
    params: dict[str, str] = {
        "broadcasterLogin": broadcaster_login,
        "offsetSeconds": str(offset_seconds),
    }
    if vod_id:
        params["vodID"] = vod_id
    elif broadcast_id:
        params["broadcastId"] = broadcast_id
    return f"{base_url or settings.clip_base_url}?{urlencode(params)}"


def clip_url_for(capture: Capture, base_url: str | None = None) -> str:
    """Clip URL for a capture: VOD offset when linked, else the live timestamp."""
    if capture.is_linked:
        return build_clip_creation_url(
            capture.streamer_id,
            capture.vod_offset_seconds or 0,
            vod_id=capture.vod_id,
            base_url=base_url,
        )
    return build_clip_creation_url(
        capture.streamer_id,
        capture.timestamp_seconds,
        broadcast_id=capture.broadcast_id,
        base_url=base_url,
    )
