"""Background loops that drive pruning and reconciliation."""

from __future__ import annotations

import asyncio
import logging

from clip_todo.reconciliation.service import ReconciliationService, VodMetadataProvider

logger = logging.getLogger(__name__)


class ReconcileScheduler:
    """Runs ``prune`` on start and periodically, and ``reconcile_pending`` periodically.

    Passes are blocking store/HTTP work, so they run in a worker thread.
    A failing pass is logged and the loop keeps going.
    """

    def __init__(
        self,
        service: ReconciliationService,
        provider: VodMetadataProvider | None,
        prune_interval: float,
        reconcile_interval: float,
    ) -> None:
        self.service = service
        self.provider = provider
        self.prune_interval = prune_interval
        self.reconcile_interval = reconcile_interval
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        logger.info(
            "Starting scheduler (prune every %ss, reconcile every %ss)",
            self.prune_interval,
            self.reconcile_interval,
        )
        self._tasks = [asyncio.create_task(self._prune_loop())]
        if self.provider is not None:
            self._tasks.append(asyncio.create_task(self._reconcile_loop()))

    async def stop(self) -> None:
        logger.info("Stopping scheduler")
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

    async def run_prune(self) -> None:
        try:
            result = await asyncio.to_thread(self.service.prune)
            logger.debug("Scheduled prune removed %d capture(s)", result.count)
        except Exception:
            logger.exception("Scheduled prune failed; will retry next interval")

    async def run_reconcile(self) -> None:
        if self.provider is None:
            return
        try:
            result = await asyncio.to_thread(self.service.reconcile_pending, self.provider)
            logger.debug("Scheduled reconcile linked %d capture(s)", result.count)
        except Exception:
            logger.exception("Scheduled reconcile failed; will retry next interval")

    async def _prune_loop(self) -> None:
        # Prune once at startup, then on every interval.
        while True:
            await self.run_prune()
            await asyncio.sleep(self.prune_interval)

    async def _reconcile_loop(self) -> None:
        while True:
            await asyncio.sleep(self.reconcile_interval)
            await self.run_reconcile()
