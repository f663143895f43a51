"""
Unit tests for Queue storage-fault retries and database-free paths.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pgworkqueue.constants import JobStatus
from pgworkqueue.errors import StorageFaultError
from pgworkqueue.queue.api import Queue
from pgworkqueue.types.job import JobRecord


def make_queue(claim_next: AsyncMock, retries: int = 2) -> Queue:
    claims = MagicMock()
    claims.claim_next = claim_next
    queue = Queue(
        session_factory=MagicMock(),
        claim_protocol=claims,
        storage_retry_attempts=retries,
    )
    queue._storage_retry_base = 0.0
    return queue


class TestStorageRetry:
    """Tests for bounded retries after storage faults."""

    @pytest.fixture
    def job(self) -> JobRecord:
        return JobRecord(id=1, status=JobStatus.IN_PROGRESS, item={"task": "x"})

    async def test_claim_retries_then_succeeds(self, job: JobRecord):
        claim_next = AsyncMock(
            side_effect=[StorageFaultError("down"), StorageFaultError("down"), job]
        )
        queue = make_queue(claim_next, retries=2)

        assert await queue.claim() == job
        assert claim_next.await_count == 3

    async def test_claim_gives_up_after_bound(self):
        claim_next = AsyncMock(side_effect=StorageFaultError("down"))
        queue = make_queue(claim_next, retries=2)

        with pytest.raises(StorageFaultError):
            await queue.claim()
        assert claim_next.await_count == 3

    async def test_no_retry_when_disabled(self):
        claim_next = AsyncMock(side_effect=StorageFaultError("down"))
        queue = make_queue(claim_next, retries=0)

        with pytest.raises(StorageFaultError):
            await queue.claim()
        assert claim_next.await_count == 1

    async def test_empty_queue_is_not_an_error(self):
        claim_next = AsyncMock(return_value=None)
        queue = make_queue(claim_next)

        assert await queue.claim() is None
        assert await queue.process(AsyncMock()) is None


class TestProcessCancellation:
    """Tests that a cancelled handler does not strand its job."""

    async def test_cancelled_handler_requeues_job(self):
        job = JobRecord(id=7, status=JobStatus.IN_PROGRESS, item={"task": "slow"})
        queue = make_queue(AsyncMock(return_value=job))
        queue.requeue = AsyncMock()

        async def hangs(job: JobRecord):
            await asyncio.Event().wait()

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(queue.process(hangs), timeout=0.05)

        queue.requeue.assert_awaited_once_with(7)
