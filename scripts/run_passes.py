"""Run a prune and/or reconcile pass once, outside the API server's scheduler."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from clip_todo.api.deps import get_reconciliation_service, get_vod_provider
from clip_todo.reconciliation.errors import TransientError


def run_passes(prune: bool, reconcile: bool, threshold_days: int | None) -> int:
    service = get_reconciliation_service()
    status = 0

    if prune:
        try:
            result = service.prune(threshold_days=threshold_days)
            print(f"Pruned {result.count} capture(s), {len(result.conflicts)} conflict(s)")
        except TransientError as e:
            print(f"Prune deferred: {e}")
            status = 1

    if reconcile:
        provider = get_vod_provider()
        if provider is None:
            print("Reconcile skipped: TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET not set")
            return 1
        try:
            result = service.reconcile_pending(provider)
        except TransientError as e:
            print(f"Reconcile deferred: {e}")
            return 1
        print(f"Linked {result.count} capture(s); deferred streamers: {result.failed or 'none'}")

    return status


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser()
    parser.add_argument("--no-prune", action="store_true")
    parser.add_argument("--no-reconcile", action="store_true")
    parser.add_argument("--days", type=int, default=None)
    args = parser.parse_args()
    sys.exit(run_passes(not args.no_prune, not args.no_reconcile, args.days))
