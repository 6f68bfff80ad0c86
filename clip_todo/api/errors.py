"""Translate capture errors into HTTP errors."""

from __future__ import annotations

from fastapi import HTTPException

from clip_todo.reconciliation.errors import (
    AlreadyLinked,
    CaptureError,
    ConflictError,
    NotFound,
    TransientError,
    ValidationError,
)

_STATUS: list[tuple[type[CaptureError], int]] = [
    (NotFound, 404),
    (AlreadyLinked, 409),
    (ConflictError, 409),
    (ValidationError, 422),
    (TransientError, 503),
]


def to_http_exception(exc: CaptureError) -> HTTPException:
    for exc_type, status in _STATUS:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
