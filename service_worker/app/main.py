"""
Worker service for the Fibonacci pipeline.
"""

import asyncio
from typing import Dict, List, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.stores import ResultCache

from .reconciler import Reconciler
from .worker import ComputeWorker

SERVICE_NAME = "worker"
DEFAULT_PORT = 8001


class WorkerService(BaseService):
    """Runs the compute loop and the reconciler next to a health/metrics API."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        result_cache: Optional[ResultCache] = None,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, config or get_config(SERVICE_NAME, DEFAULT_PORT))

        self.result_cache = result_cache if result_cache is not None else ResultCache(
            self.config.redis_url,
            values_key=self.config.values_key,
            channel=self.config.notification_channel,
        )
        self.worker = ComputeWorker(
            self.result_cache,
            max_index=self.config.max_index,
            write_attempts=self.config.worker_write_attempts,
            retry_base_delay=self.config.worker_retry_base_delay,
            resubscribe_delay=self.config.worker_resubscribe_delay_seconds,
            metrics=self.metrics,
        )
        self.reconciler = Reconciler(
            self.result_cache,
            self.worker,
            interval_seconds=self.config.reconcile_interval_seconds,
            stale_after_seconds=self.config.reconcile_after_seconds,
            metrics=self.metrics,
        )
        self._tasks: List[asyncio.Task] = []

        self._setup_worker_routes()

    def _setup_worker_routes(self):
        """Set up worker-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Fibonacci pipeline - Worker Service",
                "version": "1.0.0",
                "processed": self.worker.processed,
                "failed": self.worker.failed,
                "reconcile_sweeps": self.reconciler.sweeps,
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check worker dependencies."""
        loop_alive = bool(self._tasks) and not self._tasks[0].done()
        return {
            "redis": "ok" if await self.result_cache.health_check() else "error",
            "compute_loop": "ok" if loop_alive else "error",
        }

    async def start(self):
        """Connect to Redis and launch the background loops."""
        await self.result_cache.start()

        self._tasks.append(asyncio.create_task(self.worker.run(), name="compute-worker"))
        if self.config.reconcile_enabled:
            self._tasks.append(asyncio.create_task(self.reconciler.run(), name="reconciler"))

        self.logger.info("Worker service started", reconcile_enabled=self.config.reconcile_enabled)

    async def stop(self):
        """Cancel the background loops and disconnect."""
        self.worker.stop()
        self.reconciler.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await self.result_cache.stop()
        self.logger.info("Worker service stopped", processed=self.worker.processed)


def create_app(**kwargs):
    """Create worker service application."""
    service = WorkerService(**kwargs)
    return service.app


if __name__ == "__main__":
    WorkerService().run()
