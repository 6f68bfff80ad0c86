"""Error taxonomy for capture storage and reconciliation."""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for capture-related failures."""


class NotFound(CaptureError):
    def __init__(self, capture_id: str) -> None:
        super().__init__(f"Capture not found: {capture_id}")
        self.capture_id = capture_id


class AlreadyLinked(CaptureError):
    """Raised when a pending-only operation targets a linked capture."""

    def __init__(self, capture_id: str) -> None:
        super().__init__(f"Capture already linked to a VOD: {capture_id}")
        self.capture_id = capture_id


class ConflictError(CaptureError):
    """Lost an optimistic-concurrency race: the stored revision moved on."""

    def __init__(self, capture_id: str) -> None:
        super().__init__(f"Stale write for capture: {capture_id}")
        self.capture_id = capture_id


class TransientError(CaptureError):
    """Store or VOD provider unreachable; retry on the next pass."""


class ValidationError(CaptureError):
    """Capture input is malformed."""
