"""Reconciliation and retention endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from clip_todo.api import deps
from clip_todo.api.errors import to_http_exception
from clip_todo.api.models import PassResponse, PruneRequest, ReconcileRequest
from clip_todo.reconciliation.errors import CaptureError
from clip_todo.records.service import normalize_streamer_id

router = APIRouter()


@router.post("/api/reconcile/{streamer_id}", response_model=PassResponse)
def reconcile(streamer_id: str, body: ReconcileRequest | None = None) -> PassResponse:
    """Link a streamer's pending captures to a VOD.

    Uses the VOD(s) in the body when given; otherwise asks Twitch for the
    streamer's latest archive. A Twitch outage surfaces as 503 so the
    caller retries later.
    """
    streamer_id = normalize_streamer_id(streamer_id)
    service = deps.get_reconciliation_service()
    body = body or ReconcileRequest()

    try:
        if body.vods:
            result = service.reconcile_catalog(
                streamer_id, [v.to_descriptor(streamer_id) for v in body.vods]
            )
        elif body.vod is not None:
            result = service.reconcile(streamer_id, body.vod.to_descriptor(streamer_id))
        else:
            provider = deps.get_vod_provider()
            if provider is None:
                raise HTTPException(status_code=501, detail="Twitch API is not configured")
            vod = provider.lookup(streamer_id)
            if vod is None:
                raise HTTPException(status_code=404, detail="No VOD available yet")
            result = service.reconcile(streamer_id, vod)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc
    return PassResponse.from_result(result)


@router.post("/api/prune", response_model=PassResponse)
def prune(body: PruneRequest | None = None) -> PassResponse:
    """Run the retention pass now."""
    body = body or PruneRequest()
    try:
        result = deps.get_reconciliation_service().prune(threshold_days=body.threshold_days)
    except CaptureError as exc:
        raise to_http_exception(exc) from exc
    return PassResponse.from_result(result)
