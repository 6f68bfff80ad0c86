"""Capture stores with per-record compare-and-set writes."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Protocol

from clip_todo.reconciliation.errors import ConflictError, NotFound, TransientError
from clip_todo.reconciliation.models import Capture

if TYPE_CHECKING:
    from supabase import Client

logger = logging.getLogger(__name__)


class CaptureStore(Protocol):
    """Persistent key-value storage of captures.

    ``insert`` adds a new capture. ``put`` is a compare-and-set update: it
    succeeds only if the stored revision still equals the supplied one.
    Captures written by other processes may carry revision 0 (or NULL in
    Supabase); both count as revision 0. The stored copy (with the bumped
    revision) is returned.
    """

    def list(self) -> list[Capture]: ...

    def get(self, capture_id: str) -> Capture: ...

    def insert(self, capture: Capture) -> Capture: ...

    def put(self, capture: Capture) -> Capture: ...

    def delete(self, capture_id: str, expected_revision: int | None = None) -> None: ...


class InMemoryCaptureStore:
    """Thread-safe dict-backed store, used in tests and single-process runs."""

    def __init__(self, captures: list[Capture] | None = None) -> None:
        self._lock = threading.Lock()
        self._captures: dict[str, Capture] = {}
        for c in captures or []:
            self._captures[c.id] = c

    def list(self) -> list[Capture]:
        with self._lock:
            return list(self._captures.values())

    def get(self, capture_id: str) -> Capture:
        with self._lock:
            try:
                return self._captures[capture_id]
            except KeyError:
                raise NotFound(capture_id) from None

    def insert(self, capture: Capture) -> Capture:
        with self._lock:
            if capture.id in self._captures:
                raise ConflictError(capture.id)
            stored = replace(capture, revision=1)
            self._captures[capture.id] = stored
            return stored

    def put(self, capture: Capture) -> Capture:
        with self._lock:
            current = self._captures.get(capture.id)
            if current is None:
                raise NotFound(capture.id)
            if current.revision != capture.revision:
                raise ConflictError(capture.id)

            stored = replace(capture, revision=capture.revision + 1)
            self._captures[capture.id] = stored
            return stored

    def delete(self, capture_id: str, expected_revision: int | None = None) -> None:
        with self._lock:
            current = self._captures.get(capture_id)
            if current is None:
                raise NotFound(capture_id)
            if expected_revision is not None and current.revision != expected_revision:
                raise ConflictError(capture_id)
            del self._captures[capture_id]


class SupabaseCaptureStore:
    """Captures stored as rows in a Supabase table.

    Compare-and-set is expressed as a filtered update on ``(id, revision)``;
    an empty result means another writer got there first.
    """

    def __init__(self, client: Client, table: str = "captures") -> None:
        self._client = client
        self._table = table

    def _query(self) -> Any:
        return self._client.table(self._table)

    def list(self) -> list[Capture]:
        try:
            result = self._query().select("*").order("recorded_at", desc=True).execute()
        except Exception as exc:
            raise TransientError(f"Capture store unavailable: {exc}") from exc
        return [Capture.from_row(row) for row in result.data]

    def get(self, capture_id: str) -> Capture:
        try:
            result = self._query().select("*").eq("id", capture_id).execute()
        except Exception as exc:
            raise TransientError(f"Capture store unavailable: {exc}") from exc
        if not result.data:
            raise NotFound(capture_id)
        return Capture.from_row(result.data[0])

    def insert(self, capture: Capture) -> Capture:
        row = replace(capture, revision=1).to_row()
        try:
            existing = self._query().select("id").eq("id", capture.id).execute()
            if existing.data:
                raise ConflictError(capture.id)
            result = self._query().insert(row).execute()
        except ConflictError:
            raise
        except Exception as exc:
            raise TransientError(f"Capture store unavailable: {exc}") from exc
        return Capture.from_row(result.data[0])

    def put(self, capture: Capture) -> Capture:
        row = replace(capture, revision=capture.revision + 1).to_row()
        try:
            query = self._query().update(row).eq("id", capture.id)
            result = _match_revision(query, capture.revision).execute()
        except Exception as exc:
            raise TransientError(f"Capture store unavailable: {exc}") from exc

        if not result.data:
            # Distinguish a vanished row from a stale revision.
            self.get(capture.id)
            raise ConflictError(capture.id)
        return Capture.from_row(result.data[0])

    def delete(self, capture_id: str, expected_revision: int | None = None) -> None:
        try:
            query = self._query().delete().eq("id", capture_id)
            if expected_revision is not None:
                query = _match_revision(query, expected_revision)
            result = query.execute()
        except Exception as exc:
            raise TransientError(f"Capture store unavailable: {exc}") from exc

        if not result.data:
            self.get(capture_id)
            raise ConflictError(capture_id)


def _match_revision(query: Any, revision: int) -> Any:
    """Filter on the stored revision; rows written without one read as 0."""
    if revision == 0:
        return query.or_("revision.is.null,revision.eq.0")
    return query.eq("revision", revision)


def get_supabase_client() -> Client:
    """Create a Supabase client from settings."""
    from supabase import create_client

    from clip_todo.config import settings

    return create_client(settings.supabase_url, settings.supabase_key)


_default_store: CaptureStore | None = None
_default_store_lock = threading.Lock()


def get_capture_store() -> CaptureStore:
    """Return the process-wide capture store selected by settings."""
    global _default_store
    from clip_todo.config import settings

    with _default_store_lock:
        if _default_store is None:
            if settings.store_backend == "supabase":
                logger.info("Using Supabase capture store (table=%s)", settings.captures_table)
                _default_store = SupabaseCaptureStore(
                    get_supabase_client(), settings.captures_table
                )
            else:
                logger.info("Using in-memory capture store")
                _default_store = InMemoryCaptureStore()
        return _default_store
