"""Reconciliation service: link pending captures to VODs and prune old ones.

``reconcile`` and ``prune`` may run concurrently with each other and with
capture creation. Every write is a compare-and-set against the revision
that was read. A lost race is retried with a fresh read and, if it is lost
again, that one capture is skipped until the next pass. Each pass type
allows only one in-flight execution; an overlapping call is rejected with
``PassResult.skipped`` set.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from clip_todo.config import ReconcileConfig
from clip_todo.reconciliation.errors import (
    AlreadyLinked,
    ConflictError,
    NotFound,
    TransientError,
)
from clip_todo.reconciliation.linker import link_captures_to_vod
from clip_todo.reconciliation.matcher import calculate_vod_offset, matches, select_vod
from clip_todo.reconciliation.models import Capture, LinkedCapture, VodDescriptor, utcnow
from clip_todo.reconciliation.retention import should_purge
from clip_todo.storage.store import CaptureStore

logger = logging.getLogger(__name__)


class VodMetadataProvider(Protocol):
    """Looks up the latest VOD for a streamer; ``None`` when not available."""

    def lookup(self, streamer_id: str) -> VodDescriptor | None: ...


@runtime_checkable
class VodCatalogProvider(VodMetadataProvider, Protocol):
    """A provider that can also list several recent VODs, newest first."""

    def lookup_all(self, streamer_id: str) -> list[VodDescriptor]: ...


@dataclass
class PassResult:
    """Outcome of one reconcile or prune pass."""

    count: int = 0
    conflicts: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False


class ReconciliationService:
    """Owns the pending -> linked and * -> deleted transitions of captures."""

    def __init__(self, store: CaptureStore, config: ReconcileConfig | None = None) -> None:
        self._store = store
        self._config = config or ReconcileConfig()
        self._reconcile_lock = threading.Lock()
        self._prune_lock = threading.Lock()

    @property
    def config(self) -> ReconcileConfig:
        return self._config

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------

    def reconcile(self, streamer_id: str, vod: VodDescriptor) -> PassResult:
        """Link every pending live capture of ``streamer_id`` that matches ``vod``.

        Already-linked captures are never touched, so a second run with the
        same VOD links nothing new.

        Raises:
            TransientError: The store could not be read; retry next pass.
        """
        return self._single_flight(
            self._reconcile_lock,
            "reconcile",
            lambda: self._link_pending(streamer_id, _only(vod), [vod]),
        )

    def reconcile_catalog(self, streamer_id: str, vods: Iterable[VodDescriptor]) -> PassResult:
        """Like ``reconcile`` but each capture picks its own VOD from ``vods``.

        See ``select_vod`` for how overlapping windows are disambiguated.
        """
        catalog = list(vods)
        return self._single_flight(
            self._reconcile_lock,
            "reconcile",
            lambda: self._link_pending(streamer_id, lambda c: select_vod(c, catalog), catalog),
        )

    def reconcile_pending(self, provider: VodMetadataProvider) -> PassResult:
        """Look up VODs for every streamer with pending captures and link them.

        When the provider can list several recent VODs, each capture picks
        its own VOD from that catalog, so captures from an older broadcast
        still link after a missed pass. A provider or store failure for one
        streamer defers only that streamer; the others continue.
        """

        def run() -> PassResult:
            total = PassResult()
            for streamer_id in self.streamers_with_pending():
                try:
                    result = self._link_from_provider(provider, streamer_id)
                except TransientError:
                    logger.warning("Deferring reconciliation for %s", streamer_id, exc_info=True)
                    total.failed.append(streamer_id)
                    continue
                if result is None:
                    logger.debug("No VOD available yet for %s", streamer_id)
                    continue
                total.count += result.count
                total.conflicts.extend(result.conflicts)
                total.failed.extend(result.failed)
            return total

        return self._single_flight(self._reconcile_lock, "reconcile", run)

    def _link_from_provider(
        self, provider: VodMetadataProvider, streamer_id: str
    ) -> PassResult | None:
        if isinstance(provider, VodCatalogProvider):
            vods = provider.lookup_all(streamer_id)
            if not vods:
                return None
            return self._link_pending(streamer_id, lambda c: select_vod(c, vods), vods)

        vod = provider.lookup(streamer_id)
        if vod is None:
            return None
        return self._link_pending(streamer_id, _only(vod), [vod])

    def streamers_with_pending(self) -> list[str]:
        """Distinct streamer ids that still have pending live captures."""
        seen: dict[str, None] = {}
        for c in self._store.list():
            if c.is_pending:
                seen.setdefault(c.streamer_id, None)
        return list(seen)

    def _link_pending(
        self,
        streamer_id: str,
        choose: Callable[[Capture], VodDescriptor | None],
        vods: list[VodDescriptor],
    ) -> PassResult:
        result = PassResult()
        pending = [
            c for c in self._store.list() if c.streamer_id == streamer_id and c.is_pending
        ]

        planned: list[tuple[LinkedCapture, VodDescriptor]] = []
        for vod in vods:
            for linked in link_captures_to_vod(pending, vod):
                if choose(linked.capture) is vod:
                    planned.append((linked, vod))

        for linked, vod in planned:
            capture = linked.capture
            try:
                if self._write_link(linked, vod, choose):
                    result.count += 1
            except ConflictError:
                logger.warning("Gave up linking capture %s after repeated conflicts", capture.id)
                result.conflicts.append(capture.id)
            except TransientError:
                logger.exception("Failed to link capture %s to VOD %s", capture.id, vod.vod_id)
                result.failed.append(capture.id)

        logger.info("Linked %d capture(s) for %s", result.count, streamer_id)
        return result

    def _write_link(
        self,
        linked: LinkedCapture,
        vod: VodDescriptor,
        choose: Callable[[Capture], VodDescriptor | None],
    ) -> bool:
        """CAS-write the link for one capture; False if it no longer applies.

        The first attempt writes the linker's offset. After a lost race the
        capture is re-read and its VOD and offset are chosen again.
        """
        current = linked.capture
        offset = linked.vod_offset_seconds
        for attempt in range(self._config.conflict_retries + 1):
            try:
                self._store.put(current.linked_to(vod.vod_id, offset))
                return True
            except NotFound:
                logger.info("Capture %s disappeared before linking", current.id)
                return False
            except ConflictError:
                if attempt == self._config.conflict_retries:
                    raise
                try:
                    current = self._store.get(current.id)
                except NotFound:
                    return False
                if not current.is_pending:
                    # Someone else linked it first; linkage is never overwritten.
                    return False
                next_vod = choose(current)
                if next_vod is None:
                    return False
                vod = next_vod
                offset = calculate_vod_offset(current, vod.started_at)
        return False

    # ------------------------------------------------------------------
    # Prune
    # ------------------------------------------------------------------

    def prune(self, now: datetime | None = None, threshold_days: int | None = None) -> PassResult:
        """Delete every capture the retention policy marks as expired.

        Raises:
            TransientError: The store could not be listed; retry next pass.
        """
        now = now or utcnow()
        days = self._config.retention_days if threshold_days is None else threshold_days
        return self._single_flight(self._prune_lock, "prune", lambda: self._prune(now, days))

    def _expired(self, capture: Capture, now: datetime, days: int) -> bool:
        return should_purge(capture, now, days, exempt_linked=self._config.exempt_linked)

    def _prune(self, now: datetime, days: int) -> PassResult:
        result = PassResult()
        for capture in self._store.list():
            if not self._expired(capture, now, days):
                continue
            try:
                if self._delete_expired(capture, now, days):
                    result.count += 1
            except ConflictError:
                logger.warning("Gave up pruning capture %s after repeated conflicts", capture.id)
                result.conflicts.append(capture.id)
            except TransientError:
                logger.exception("Failed to prune capture %s", capture.id)
                result.failed.append(capture.id)

        if result.count:
            logger.info("Pruned %d capture(s) older than %d days", result.count, days)
        return result

    def _delete_expired(self, capture: Capture, now: datetime, days: int) -> bool:
        current = capture
        for attempt in range(self._config.conflict_retries + 1):
            try:
                self._store.delete(current.id, expected_revision=current.revision)
                return True
            except NotFound:
                return False
            except ConflictError:
                if attempt == self._config.conflict_retries:
                    raise
                try:
                    current = self._store.get(capture.id)
                except NotFound:
                    return False
                if not self._expired(current, now, days):
                    return False
        return False

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_pending(self, capture_id: str) -> None:
        """Delete a capture the user abandoned before it was linked.

        Raises:
            NotFound: No capture with this id.
            AlreadyLinked: The capture is linked; it is only removed through
                retention or explicit deletion.
            ConflictError: The capture kept changing underneath us.
        """
        for attempt in range(self._config.conflict_retries + 1):
            capture = self._store.get(capture_id)
            if capture.is_linked:
                raise AlreadyLinked(capture_id)
            try:
                self._store.delete(capture_id, expected_revision=capture.revision)
                logger.info("Cancelled pending capture %s", capture_id)
                return
            except ConflictError:
                if attempt == self._config.conflict_retries:
                    raise

    # ------------------------------------------------------------------

    @staticmethod
    def _single_flight(
        lock: threading.Lock, name: str, run: Callable[[], PassResult]
    ) -> PassResult:
        if not lock.acquire(blocking=False):
            logger.info("%s pass already running; skipping", name)
            return PassResult(skipped=True)
        try:
            return run()
        finally:
            lock.release()


def _only(vod: VodDescriptor) -> Callable[[Capture], VodDescriptor | None]:
    return lambda c: vod if matches(c, vod) else None
