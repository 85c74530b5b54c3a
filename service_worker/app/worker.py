"""
Compute worker: turns "index requested" notifications into cached values.
"""

import asyncio
import time
from contextlib import aclosing
from typing import Callable, Optional, TYPE_CHECKING

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

from .compute import fib

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from shared.stores import ResultCache


class ComputeWorker:
    """Single logical subscriber that computes and stores Fibonacci values.

    Several workers may run side by side: computing the same index twice
    yields the same value, so the last write wins harmlessly.
    """

    def __init__(
        self,
        result_cache: "ResultCache",
        *,
        compute: Callable[[int], int] = fib,
        max_index: int = 40,
        write_attempts: int = 3,
        retry_base_delay: float = 0.1,
        resubscribe_delay: float = 1.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.result_cache = result_cache
        self.compute = compute
        self.max_index = max_index
        self.resubscribe_delay = resubscribe_delay
        self.metrics = metrics
        self.logger = get_logger("worker.compute_worker")

        self.running = False
        self.subscribed = asyncio.Event()
        self.processed = 0
        self.failed = 0

        retry_config = RetryConfig(
            max_attempts=write_attempts,
            base_delay=retry_base_delay,
            max_delay=5.0,
        )
        self._write_value = retry_on_exception((StoreUnavailableError,), retry_config)(self._store_value)

    async def _store_value(self, index: int, value: int):
        await self.result_cache.set_value(index, value)

    def _record(self, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("computations_total", outcome=outcome)

    async def process(self, index: int) -> bool:
        """Compute and store one index. Never raises; returns True on success.

        A failure leaves the entry pending for the reconciler to pick up.
        Indices outside [0, max_index] are skipped without computing.
        """
        if not 0 <= index <= self.max_index:
            self.failed += 1
            self._record("out_of_range")
            self.logger.warning("Skipping index outside allowed range", index=index, max_index=self.max_index)
            return False

        start_time = time.time()

        try:
            value = self.compute(index)
        except Exception as e:
            self.failed += 1
            self._record("compute_failure")
            self.logger.error("Computation failed", index=index, error=str(e), exc_info=True)
            return False

        try:
            await self._write_value(index, value)
        except RetryError as e:
            self.failed += 1
            self._record("write_failure")
            self.logger.error(
                "Dropping result after failed cache writes",
                index=index,
                attempts=e.attempts,
                error=str(e.last_exception)
            )
            return False
        except Exception as e:
            self.failed += 1
            self._record("write_failure")
            self.logger.error("Storing computed value failed", index=index, error=str(e), exc_info=True)
            return False

        self.processed += 1
        self._record("computed")
        if self.metrics:
            self.metrics.observe_histogram("computation_duration_seconds", time.time() - start_time)
        self.logger.info("Value computed", index=index, value=value)
        return True

    async def _on_subscribed(self):
        self.subscribed.set()
        if self.metrics:
            self.metrics.set_gauge("subscriber_active", 1)

    def _on_unsubscribed(self):
        self.subscribed.clear()
        if self.metrics:
            self.metrics.set_gauge("subscriber_active", 0)

    async def run(self):
        """Consume notifications until stop() is called or the task is cancelled.

        A dropped subscription is re-established after resubscribe_delay;
        notifications published in between are lost and left to the reconciler.
        """
        self.running = True
        self.logger.info("Compute worker started")

        while self.running:
            try:
                async with aclosing(self.result_cache.subscribe(on_subscribed=self._on_subscribed)) as notifications:
                    async for notification in notifications:
                        await self.process(notification.index)
                        if not self.running:
                            break
            except StoreUnavailableError as e:
                self.logger.warning(
                    "Notification subscription lost",
                    error=e.message,
                    retry_in_seconds=self.resubscribe_delay
                )
            except Exception as e:
                self.logger.error(
                    "Unexpected error in notification loop",
                    error=str(e),
                    retry_in_seconds=self.resubscribe_delay,
                    exc_info=True
                )
            finally:
                self._on_unsubscribed()

            if self.running:
                await asyncio.sleep(self.resubscribe_delay)

        self.logger.info("Compute worker stopped", processed=self.processed, failed=self.failed)

    def stop(self):
        """Ask the loop to exit after the current notification."""
        self.running = False
