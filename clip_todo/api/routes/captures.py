"""Capture endpoints: create, list, memo, delete, cancel and clip URL."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from clip_todo.api import deps
from clip_todo.api.errors import to_http_exception
from clip_todo.api.models import CaptureCreate, CaptureOut, ClipUrlResponse, MemoUpdate
from clip_todo.reconciliation.errors import CaptureError
from clip_todo.twitch.clip_url import clip_url_for

router = APIRouter()


@router.post("/api/captures", response_model=CaptureOut, status_code=201)
async def create_capture(body: CaptureCreate) -> CaptureOut:
    """Record a new moment from the live player or a VOD."""
    try:
        capture = deps.get_record_service().create_capture(
            streamer_id=body.streamer_id,
            streamer_name=body.streamer_name,
            timestamp_seconds=body.timestamp_seconds,
            source_type=body.source_type,
            vod_id=body.vod_id,
            broadcast_id=body.broadcast_id,
            memo=body.memo,
        )
    except CaptureError as exc:
        raise to_http_exception(exc) from exc
    return CaptureOut.from_capture(capture)


@router.get("/api/captures", response_model=list[CaptureOut])
async def list_captures(streamer_id: str | None = None) -> list[CaptureOut]:
    """List captures, newest first."""
    try:
        captures = deps.get_record_service().list_captures(streamer_id)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc
    return [CaptureOut.from_capture(c) for c in captures]


@router.get("/api/captures/{capture_id}", response_model=CaptureOut)
async def get_capture(capture_id: str) -> CaptureOut:
    try:
        return CaptureOut.from_capture(deps.get_record_service().get_capture(capture_id))
    except CaptureError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/api/captures/{capture_id}/memo", response_model=CaptureOut)
async def update_memo(capture_id: str, body: MemoUpdate) -> CaptureOut:
    try:
        capture = deps.get_record_service().update_memo(capture_id, body.memo)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc
    return CaptureOut.from_capture(capture)


@router.delete("/api/captures/{capture_id}", status_code=204)
async def delete_capture(capture_id: str) -> None:
    """Delete a capture regardless of its linkage."""
    try:
        deps.get_record_service().delete_capture(capture_id)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc


@router.delete("/api/captures/{capture_id}/pending", status_code=204)
async def cancel_pending(capture_id: str) -> None:
    """Abort a just-created capture. Linked captures are refused with 409."""
    try:
        deps.get_reconciliation_service().cancel_pending(capture_id)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc


@router.get("/api/captures/{capture_id}/clip-url", response_model=ClipUrlResponse)
async def clip_url(capture_id: str) -> ClipUrlResponse:
    try:
        capture = deps.get_record_service().get_capture(capture_id)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc
    if not capture.is_linked and not capture.broadcast_id:
        raise HTTPException(
            status_code=409, detail="Capture has no VOD or broadcast reference yet"
        )
    return ClipUrlResponse(capture_id=capture.id, url=clip_url_for(capture))
