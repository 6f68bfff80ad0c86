"""Pydantic request/response schemas for the Clip Todo API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from clip_todo.reconciliation.models import (
    Capture,
    SourceType,
    VodDescriptor,
    VodDescriptorWithSessionId,
    parse_instant,
)
from clip_todo.reconciliation.service import PassResult


class CaptureCreate(BaseModel):
    """Request body for creating a capture."""

    streamer_id: str
    streamer_name: str
    timestamp_seconds: int = Field(ge=0)
    source_type: SourceType = SourceType.LIVE
    vod_id: str | None = None
    broadcast_id: str | None = None
    memo: str | None = None


class CaptureOut(BaseModel):
    """A stored capture as returned by the API."""

    id: str
    streamer_id: str
    streamer_name: str
    source_type: SourceType
    timestamp_seconds: int
    recorded_at: datetime
    broadcast_id: str | None = None
    vod_id: str | None = None
    vod_offset_seconds: int | None = None
    memo: str | None = None
    linked: bool = False

    @classmethod
    def from_capture(cls, c: Capture) -> CaptureOut:
        return cls(
            id=c.id,
            streamer_id=c.streamer_id,
            streamer_name=c.streamer_name,
            source_type=c.source_type,
            timestamp_seconds=c.timestamp_seconds,
            recorded_at=c.recorded_at,
            broadcast_id=c.broadcast_id,
            vod_id=c.vod_id,
            vod_offset_seconds=c.vod_offset_seconds,
            memo=c.memo,
            linked=c.is_linked,
        )


class MemoUpdate(BaseModel):
    memo: str | None = None


class ClipUrlResponse(BaseModel):
    capture_id: str
    url: str


class VodIn(BaseModel):
    """A VOD supplied by the caller instead of looked up from Twitch."""

    vod_id: str
    started_at: datetime
    duration_seconds: int = Field(ge=0)
    stream_id: str | None = None

    def to_descriptor(self, streamer_id: str) -> VodDescriptor:
        started_at = parse_instant(self.started_at)
        if self.stream_id:
            return VodDescriptorWithSessionId(
                vod_id=self.vod_id,
                streamer_id=streamer_id,
                started_at=started_at,
                duration_seconds=self.duration_seconds,
                stream_id=self.stream_id,
            )
        return VodDescriptor(
            vod_id=self.vod_id,
            streamer_id=streamer_id,
            started_at=started_at,
            duration_seconds=self.duration_seconds,
        )


class ReconcileRequest(BaseModel):
    """Optional VOD(s) to reconcile against; Twitch is queried when empty."""

    vod: VodIn | None = None
    vods: list[VodIn] | None = None


class PassResponse(BaseModel):
    """Count-based outcome of a reconcile or prune pass."""

    count: int
    conflicts: list[str] = []
    failed: list[str] = []
    skipped: bool = False

    @classmethod
    def from_result(cls, r: PassResult) -> PassResponse:
        return cls(count=r.count, conflicts=r.conflicts, failed=r.failed, skipped=r.skipped)


class PruneRequest(BaseModel):
    threshold_days: int | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Tagged message protocol (one variant per operation)
# ---------------------------------------------------------------------------


class CreateRecordMessage(CaptureCreate):
    type: Literal["CREATE_RECORD"]


class GetRecordsMessage(BaseModel):
    type: Literal["GET_RECORDS"]
    streamer_id: str | None = None


class UpdateMemoMessage(BaseModel):
    type: Literal["UPDATE_MEMO"]
    id: str
    memo: str | None = None


class DeleteRecordMessage(BaseModel):
    type: Literal["DELETE_RECORD"]
    id: str


class CancelPendingMessage(BaseModel):
    type: Literal["CANCEL_PENDING"]
    id: str


class LinkVodMessage(BaseModel):
    type: Literal["LINK_VOD"]
    streamer_id: str
    vod: VodIn


class PruneMessage(BaseModel):
    type: Literal["PRUNE"]
    threshold_days: int | None = Field(default=None, ge=0)


Message = Annotated[
    CreateRecordMessage
    | GetRecordsMessage
    | UpdateMemoMessage
    | DeleteRecordMessage
    | CancelPendingMessage
    | LinkVodMessage
    | PruneMessage,
    Field(discriminator="type"),
]


class MessageResponse(BaseModel):
    """Explicit success/error wrapper for the message endpoint."""

    success: bool
    data: Any = None
    error: str | None = None
