"""
End-to-end tests for the request/compute/cache pipeline.

Gateways and workers share one pair of in-memory stores, so these exercise
the real coordination between submit, notification, compute and read.
"""

import asyncio
import pytest

from service_gateway.app.gateway import RequestGateway
from service_worker.app.reconciler import Reconciler
from service_worker.app.worker import ComputeWorker
from shared.errors import InvalidIndexError, StoreUnavailableError
from shared.test_helpers import FIBONACCI_0_TO_9, InMemoryHistoryStore, InMemoryResultCache, wait_until


class TestPipelineFlow:
    """End-to-end pipeline tests."""

    @pytest.fixture
    def history(self):
        return InMemoryHistoryStore()

    @pytest.fixture
    def cache(self):
        return InMemoryResultCache()

    @pytest.fixture
    def gateway(self, history, cache):
        return RequestGateway(history, cache, max_index=40)

    @staticmethod
    async def start_workers(cache, count=1):
        workers = [ComputeWorker(cache, retry_base_delay=0, resubscribe_delay=0.01) for _ in range(count)]
        tasks = [asyncio.create_task(w.run()) for w in workers]
        for worker in workers:
            await asyncio.wait_for(worker.subscribed.wait(), timeout=1)
        return workers, tasks

    @staticmethod
    async def stop_workers(workers, tasks):
        for worker in workers:
            worker.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    @staticmethod
    async def settled(gateway, indices):
        async def check():
            results = await gateway.list_results()
            return all(i in results and not results[i].is_pending for i in indices)
        return await wait_until(check)

    @pytest.mark.asyncio
    async def test_submitted_indices_are_computed(self, gateway, cache):
        """Test every valid index eventually holds fib(index)."""
        workers, tasks = await self.start_workers(cache)
        try:
            for index in range(10):
                await gateway.submit(index)

            assert await self.settled(gateway, range(10))
            results = await gateway.list_results()
            assert [results[i].value for i in range(10)] == FIBONACCI_0_TO_9
        finally:
            await self.stop_workers(workers, tasks)

    @pytest.mark.asyncio
    async def test_cap_value_is_computed(self, gateway, cache):
        """Test the largest allowed index completes."""
        workers, tasks = await self.start_workers(cache)
        try:
            await gateway.submit(40)

            assert await self.settled(gateway, [40])
            assert (await gateway.get_result(40)).value == 102334155
        finally:
            await self.stop_workers(workers, tasks)

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_with_two_workers(self, history, cache):
        """Test two callers and two workers converge on one entry for 5."""
        gateway_a = RequestGateway(history, cache)
        gateway_b = RequestGateway(history, cache)
        workers, tasks = await self.start_workers(cache, count=2)
        try:
            await asyncio.gather(gateway_a.submit(5), gateway_b.submit(5))

            assert await self.settled(gateway_a, [5])

            async def all_processed():
                return sum(w.processed for w in workers) == 4

            # Each worker sees both notifications
            assert await wait_until(all_processed)

            assert [r.index for r in await gateway_a.list_history()] == [5, 5]
            results = await gateway_b.list_results()
            assert list(results) == [5]
            assert results[5].value == 5
        finally:
            await self.stop_workers(workers, tasks)

    @pytest.mark.asyncio
    async def test_history_counts_every_accepted_submission(self, gateway, cache):
        """Test N accepted submissions give N ordered records; rejects add none."""
        workers, tasks = await self.start_workers(cache)
        try:
            submitted = [3, 3, 0, 7, 3]
            for index in submitted:
                await gateway.submit(index)
            for bad in (-1, 41, "x"):
                with pytest.raises(InvalidIndexError):
                    await gateway.submit(bad)

            history = await gateway.list_history()
            assert [r.index for r in history] == submitted
        finally:
            await self.stop_workers(workers, tasks)

    @pytest.mark.asyncio
    async def test_lost_notification_is_reconciled(self, gateway, cache):
        """Test an index submitted with no worker running is recovered."""
        await gateway.submit(9)
        assert (await gateway.get_result(9)).is_pending

        workers, tasks = await self.start_workers(cache)
        try:
            # Nothing re-sends the notification, so the entry stays pending
            await asyncio.sleep(0.05)
            assert (await gateway.get_result(9)).is_pending

            reconciler = Reconciler(cache, workers[0], stale_after_seconds=0)
            assert await reconciler.sweep() == 1
            assert (await gateway.get_result(9)).value == 34
        finally:
            await self.stop_workers(workers, tasks)

    @pytest.mark.asyncio
    async def test_resubmission_recomputes_without_regressing(self, gateway, cache):
        """Test re-requesting a computed index never shows it as pending again."""
        workers, tasks = await self.start_workers(cache)
        try:
            await gateway.submit(8)
            assert await self.settled(gateway, [8])

            await gateway.submit(8)

            assert not (await gateway.get_result(8)).is_pending
            assert (await gateway.get_result(8)).value == 21
        finally:
            await self.stop_workers(workers, tasks)

    @pytest.mark.asyncio
    async def test_cache_outage_at_submission(self, gateway, history, cache):
        """Test a cache outage fails submit and leaves no claimed value."""
        workers, tasks = await self.start_workers(cache)
        try:
            cache.available = False
            with pytest.raises(StoreUnavailableError):
                await gateway.submit(6)

            cache.available = True
            assert [r.index for r in history.records] == [6]
            assert await gateway.get_result(6) is None
        finally:
            await self.stop_workers(workers, tasks)
