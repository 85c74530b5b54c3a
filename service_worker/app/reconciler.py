"""
Reconciliation of pending entries whose notification never reached a worker.
"""

import asyncio
from typing import Optional, TYPE_CHECKING

from shared.errors import StoreUnavailableError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from shared.stores import ResultCache
    from .worker import ComputeWorker


class Reconciler:
    """Periodically reprocesses pending entries older than a threshold."""

    def __init__(
        self,
        result_cache: "ResultCache",
        worker: "ComputeWorker",
        *,
        interval_seconds: float = 15.0,
        stale_after_seconds: float = 30.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.result_cache = result_cache
        self.worker = worker
        self.interval_seconds = interval_seconds
        self.stale_after_seconds = stale_after_seconds
        self.metrics = metrics
        self.logger = get_logger("worker.reconciler")
        self.running = False
        self.sweeps = 0

    async def sweep(self) -> int:
        """Reprocess stale pending entries; returns how many were completed."""
        try:
            stale = await self.result_cache.pending_older_than(self.stale_after_seconds)
        except StoreUnavailableError as e:
            self.logger.warning("Reconciliation sweep skipped", error=e.message)
            return 0

        completed = 0
        for entry in stale:
            if await self.worker.process(entry.index):
                completed += 1
                if self.metrics:
                    self.metrics.increment_counter("reconciled_entries_total")

        self.sweeps += 1
        if stale:
            self.logger.info("Reconciled pending entries", found=len(stale), completed=completed)
        return completed

    async def run(self):
        """Sweep immediately, then every interval_seconds."""
        self.running = True
        while self.running:
            try:
                await self.sweep()
            except Exception as e:
                self.logger.error("Unexpected error in reconciliation sweep", error=str(e), exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def stop(self):
        self.running = False
