"""Retention policy for captured moments."""

from __future__ import annotations

from datetime import datetime, timedelta

from clip_todo.reconciliation.models import Capture

DEFAULT_RETENTION_DAYS = 60


def should_purge(
    capture: Capture,
    now: datetime,
    threshold_days: int = DEFAULT_RETENTION_DAYS,
    exempt_linked: bool = False,
) -> bool:
    """Return True when ``capture`` is strictly older than the threshold.

    Age is measured from ``recorded_at`` so repeated processing never
    resets it. Linked captures are purged like pending ones unless
    ``exempt_linked`` is set.
    """
    if exempt_linked and capture.is_linked:
        return False
    return now - capture.recorded_at > timedelta(days=threshold_days)
