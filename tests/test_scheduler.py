"""Tests for the background scheduler (driven with asyncio.run, no real waits)."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

from clip_todo.reconciliation.scheduler import ReconcileScheduler
from clip_todo.reconciliation.service import PassResult


def _service() -> MagicMock:
    service = MagicMock()
    service.prune.return_value = PassResult(count=2)
    service.reconcile_pending.return_value = PassResult(count=1)
    return service


class TestReconcileScheduler:
    def test_prunes_on_start(self) -> None:
        service = _service()

        async def run() -> None:
            scheduler = ReconcileScheduler(service, None, prune_interval=3600, reconcile_interval=3600)
            await scheduler.start()
            for _ in range(50):
                if service.prune.called:
                    break
                await asyncio.sleep(0.01)
            assert scheduler.running
            await scheduler.stop()
            assert not scheduler.running

        asyncio.run(run())
        service.prune.assert_called_once_with()
        service.reconcile_pending.assert_not_called()

    def test_reconcile_loop_uses_provider(self) -> None:
        service = _service()
        provider = MagicMock()

        async def run() -> None:
            scheduler = ReconcileScheduler(service, provider, prune_interval=3600, reconcile_interval=0)
            await scheduler.start()
            for _ in range(50):
                if service.reconcile_pending.called:
                    break
                await asyncio.sleep(0.01)
            await scheduler.stop()

        asyncio.run(run())
        service.reconcile_pending.assert_called_with(provider)

    def test_failing_pass_is_logged_not_raised(self) -> None:
        service = _service()
        service.prune.side_effect = RuntimeError("store down")
        scheduler = ReconcileScheduler(service, None, prune_interval=1, reconcile_interval=1)

        asyncio.run(scheduler.run_prune())
        service.prune.assert_called_once()

    def test_run_reconcile_without_provider_is_noop(self) -> None:
        service = _service()
        scheduler = ReconcileScheduler(service, None, prune_interval=1, reconcile_interval=1)

        asyncio.run(scheduler.run_reconcile())
        service.reconcile_pending.assert_not_called()
