"""Single tagged-message endpoint mirroring the extension's message bus.

Every request carries a ``type`` tag selecting one operation; every reply
is a ``MessageResponse`` with ``success`` set, never an HTTP error.
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic
from fastapi import APIRouter, Body

from clip_todo.api import deps
from clip_todo.api.models import (
    CancelPendingMessage,
    CaptureOut,
    CreateRecordMessage,
    DeleteRecordMessage,
    GetRecordsMessage,
    LinkVodMessage,
    Message,
    MessageResponse,
    PassResponse,
    PruneMessage,
    UpdateMemoMessage,
)
from clip_todo.reconciliation.errors import CaptureError
from clip_todo.records.service import normalize_streamer_id

logger = logging.getLogger(__name__)

router = APIRouter()

_message_adapter: pydantic.TypeAdapter[Any] = pydantic.TypeAdapter(Message)


def handle_message(message: Any) -> Any:
    """Dispatch one validated message and return its JSON-able payload."""
    records = deps.get_record_service()

    if isinstance(message, CreateRecordMessage):
        capture = records.create_capture(
            streamer_id=message.streamer_id,
            streamer_name=message.streamer_name,
            timestamp_seconds=message.timestamp_seconds,
            source_type=message.source_type,
            vod_id=message.vod_id,
            broadcast_id=message.broadcast_id,
            memo=message.memo,
        )
        return CaptureOut.from_capture(capture).model_dump(mode="json")
    if isinstance(message, GetRecordsMessage):
        return [
            CaptureOut.from_capture(c).model_dump(mode="json")
            for c in records.list_captures(message.streamer_id)
        ]
    if isinstance(message, UpdateMemoMessage):
        capture = records.update_memo(message.id, message.memo)
        return CaptureOut.from_capture(capture).model_dump(mode="json")
    if isinstance(message, DeleteRecordMessage):
        records.delete_capture(message.id)
        return None
    if isinstance(message, CancelPendingMessage):
        deps.get_reconciliation_service().cancel_pending(message.id)
        return None
    if isinstance(message, LinkVodMessage):
        streamer_id = normalize_streamer_id(message.streamer_id)
        result = deps.get_reconciliation_service().reconcile(
            streamer_id, message.vod.to_descriptor(streamer_id)
        )
        return PassResponse.from_result(result).model_dump(mode="json")
    if isinstance(message, PruneMessage):
        result = deps.get_reconciliation_service().prune(threshold_days=message.threshold_days)
        return PassResponse.from_result(result).model_dump(mode="json")
    raise TypeError(f"Unhandled message: {type(message).__name__}")


@router.post("/api/messages", response_model=MessageResponse)
def post_message(payload: dict[str, Any] = Body(...)) -> MessageResponse:  # noqa: B008
    try:
        message = _message_adapter.validate_python(payload)
    except pydantic.ValidationError as exc:
        return MessageResponse(success=False, error=f"Invalid message: {exc.errors()[0]['msg']}")

    try:
        data = handle_message(message)
    except CaptureError as exc:
        return MessageResponse(success=False, error=str(exc))
    except Exception:
        logger.exception("Message %s failed", payload.get("type"))
        return MessageResponse(success=False, error="Unknown error")
    return MessageResponse(success=True, data=data)
