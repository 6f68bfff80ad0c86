"""Twitch Helix client used as the VOD metadata provider."""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx

from clip_todo.config import Settings, settings
from clip_todo.reconciliation.errors import TransientError
from clip_todo.reconciliation.models import (
    VodDescriptor,
    VodDescriptorWithSessionId,
    parse_instant,
)

logger = logging.getLogger(__name__)

# Refresh the app token this long before Twitch says it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 5 * 60

_DURATION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$")

# Status codes that mean "try again later" rather than "this does not exist"
_TRANSIENT_STATUSES = {401, 408, 429, 500, 502, 503, 504}


def parse_twitch_duration(value: str) -> int:
    """Convert a Helix duration like ``"3h8m33s"`` to seconds."""
    match = _DURATION_RE.match(value.strip())
    if not value.strip() or match is None:
        raise ValueError(f"Unrecognised Twitch duration: {value!r}")
    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds


@dataclass(frozen=True)
class AppToken:
    access_token: str
    expires_in: int
    obtained_at: float

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now > self.obtained_at + self.expires_in - TOKEN_EXPIRY_MARGIN_SECONDS


@dataclass(frozen=True)
class LiveStream:
    """The streamer's current broadcast, if any."""

    stream_id: str
    streamer_id: str
    started_at: datetime

    def elapsed_seconds(self, now: datetime) -> int:
        return max(0, (now - self.started_at) // timedelta(seconds=1))


class TwitchClient:
    """Minimal Helix wrapper: users, streams and archive videos.

    Every network, auth or rate-limit failure is raised as
    ``TransientError`` so callers retry on the next scheduled pass.
    """

    def __init__(
        self,
        cfg: Settings | None = None,
        http: httpx.Client | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._http = http or httpx.Client(timeout=self._cfg.http_timeout_seconds)
        self._token: AppToken | None = None
        self._token_lock = threading.Lock()

    def close(self) -> None:
        self._http.close()

    # -- auth -------------------------------------------------------------

    def _app_token(self) -> str:
        with self._token_lock:
            if self._token is None or self._token.is_expired():
                self._token = self._fetch_app_token()
            return self._token.access_token

    def _fetch_app_token(self) -> AppToken:
        if not self._cfg.twitch_client_id or not self._cfg.twitch_client_secret:
            raise TransientError("Twitch credentials are not configured")
        try:
            r = self._http.post(
                self._cfg.twitch_auth_url,
                data={
                    "client_id": self._cfg.twitch_client_id,
                    "client_secret": self._cfg.twitch_client_secret,
                    "grant_type": "client_credentials",
                },
            )
            r.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransientError(f"Token request failed: {exc}") from exc
        body = r.json()
        logger.debug("Obtained Twitch app token (expires_in=%s)", body.get("expires_in"))
        return AppToken(
            access_token=body["access_token"],
            expires_in=int(body.get("expires_in", 0)),
            obtained_at=time.time(),
        )

    def _get(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        headers = {
            "Client-Id": self._cfg.twitch_client_id,
            "Authorization": f"Bearer {self._app_token()}",
        }
        url = f"{self._cfg.twitch_api_base_url.rstrip('/')}/{path}"
        try:
            r = self._http.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise TransientError(f"Twitch API unreachable: {exc}") from exc

        if r.status_code == 401:
            # Token revoked or expired early; fetch a new one next call.
            with self._token_lock:
                self._token = None
        if r.status_code in _TRANSIENT_STATUSES:
            raise TransientError(f"Twitch API returned {r.status_code} for {path}")
        if r.status_code == 404:
            return []
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransientError(f"Twitch API error: {exc}") from exc
        return list(r.json().get("data") or [])

    # -- lookups ----------------------------------------------------------

    def get_user_id(self, login: str) -> str | None:
        data = self._get("users", {"login": login})
        return str(data[0]["id"]) if data else None

    def get_current_stream(self, streamer_id: str) -> LiveStream | None:
        """The live broadcast for ``streamer_id``, or None when offline."""
        data = self._get("streams", {"user_login": streamer_id})
        if not data:
            return None
        s = data[0]
        return LiveStream(
            stream_id=str(s["id"]),
            streamer_id=str(s.get("user_login") or streamer_id).lower(),
            started_at=parse_instant(s["started_at"]),
        )

    def lookup_all(self, streamer_id: str, limit: int = 5) -> list[VodDescriptor]:
        """Recent archive VODs for a streamer, newest first."""
        user_id = self.get_user_id(streamer_id)
        if user_id is None:
            logger.info("Twitch user %s not found", streamer_id)
            return []
        videos = self._get("videos", {"user_id": user_id, "type": "archive", "first": limit})
        return [_to_descriptor(v, streamer_id) for v in videos]

    def lookup(self, streamer_id: str) -> VodDescriptor | None:
        """The most recent archive VOD for ``streamer_id``, if any."""
        vods = self.lookup_all(streamer_id, limit=1)
        return vods[0] if vods else None


def _to_descriptor(video: dict[str, Any], streamer_id: str) -> VodDescriptor:
    login = str(video.get("user_login") or streamer_id).lower()
    started_at = parse_instant(video["created_at"])
    duration = parse_twitch_duration(video.get("duration") or "0s")
    stream_id = video.get("stream_id")
    if stream_id:
        return VodDescriptorWithSessionId(
            vod_id=str(video["id"]),
            streamer_id=login,
            started_at=started_at,
            duration_seconds=duration,
            stream_id=str(stream_id),
        )
    return VodDescriptor(
        vod_id=str(video["id"]),
        streamer_id=login,
        started_at=started_at,
        duration_seconds=duration,
    )
