"""Test helpers: a fixed clock origin and a capture factory."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Any

from clip_todo.reconciliation.models import Capture, SourceType

T0 = datetime(2026, 3, 1, 18, 0, 0, tzinfo=timezone.utc)

_ids = count(1)


def make_capture(**overrides: Any) -> Capture:
    """Live, pending capture for streamer "foo" recorded at T0 unless overridden."""
    fields: dict[str, Any] = {
        "id": f"cap-{next(_ids)}",
        "streamer_id": "foo",
        "streamer_name": "Foo",
        "source_type": SourceType.LIVE,
        "timestamp_seconds": 0,
        "recorded_at": T0,
    }
    fields.update(overrides)
    return Capture(**fields)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)
