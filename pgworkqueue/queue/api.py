"""
Queue API used by workers.

Every method runs in its own transaction and commits before returning;
on error the transaction is rolled back and nothing is applied.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgworkqueue.config import get_settings
from pgworkqueue.constants import (
    SPAN_CLAIM_JOB,
    SPAN_COMPLETE_JOB,
    SPAN_ENQUEUE_JOB,
    SPAN_FAIL_JOB,
    SPAN_PROCESS_JOB,
    SPAN_REQUEUE_JOB,
    JobStatus,
)
from pgworkqueue.db.connection import get_session_context, get_session_factory
from pgworkqueue.db.repository import JobRepository, translate_db_errors
from pgworkqueue.errors import (
    ConstraintViolationError,
    JobNotFoundError,
    StorageFaultError,
)
from pgworkqueue.observability.logging import job_context
from pgworkqueue.observability.tracing import get_tracer
from pgworkqueue.queue.claim import ClaimProtocol
from pgworkqueue.retry import backoff_delay
from pgworkqueue.types.job import (
    Fail,
    JobHandler,
    JobRecord,
    ProcessFlow,
    ProcessOutcome,
    Requeue,
    Success,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Queue:
    """
    A FIFO work queue backed by a PostgreSQL table.

    Jobs are created ready, claimed by exactly one worker, and then either
    completed (deleted), failed permanently (kept with a message) or
    requeued. The queue never requeues on its own; a caller that abandons
    a claim, or a liveness monitor acting for a dead worker, must call
    :meth:`requeue`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        claim_protocol: ClaimProtocol | None = None,
        storage_retry_attempts: int | None = None,
    ):
        """
        Initialize the queue.

        Args:
            session_factory: Session factory. Defaults to the one set up by
                init_db().
            claim_protocol: Claim protocol. Defaults to one built from
                settings over the same session factory.
            storage_retry_attempts: Extra attempts for claim and get after a
                storage fault.
        """
        settings = get_settings()

        self._session_factory = session_factory or get_session_factory()
        self._claims = claim_protocol or ClaimProtocol(self._session_factory)
        self.storage_retry_attempts = (
            storage_retry_attempts
            if storage_retry_attempts is not None
            else settings.storage_retry_attempts
        )
        self._storage_retry_base = settings.storage_retry_base_seconds

    async def enqueue(self, item: Any) -> int:
        """
        Add a job to the back of the queue.

        Never retried internally: a retry after a lost acknowledgement would
        create a duplicate job.

        Args:
            item: JSON-serializable payload.

        Returns:
            The new job's id.
        """
        with get_tracer().start_as_current_span(SPAN_ENQUEUE_JOB) as span:
            async with translate_db_errors(), get_session_context(
                self._session_factory
            ) as session:
                job = await JobRepository(session).insert(item)
            span.set_attribute("job_id", job.id)
        return job.id

    async def get(self, job_id: int) -> JobRecord:
        """
        Get a job by ID.

        Raises:
            JobNotFoundError: If the job does not exist.
        """

        async def _get() -> JobRecord | None:
            async with translate_db_errors(), get_session_context(
                self._session_factory
            ) as session:
                return await JobRepository(session).get(job_id)

        job = await self._with_storage_retry(_get, "get")
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def claim(self) -> JobRecord | None:
        """
        Claim the oldest ready job.

        Returns:
            The job, now in progress and owned by the caller, or None when
            the queue has nothing ready.
        """
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOB) as span:
            job = await self._with_storage_retry(self._claims.claim_next, "claim")
            span.set_attribute("claimed", job is not None)
            if job is not None:
                span.set_attribute("job_id", job.id)
        return job

    async def complete(self, job_id: int) -> None:
        """
        Mark an in-progress job as done by removing it.

        Raises:
            JobNotFoundError: If the job does not exist (or was already
                completed).
            InvalidTransitionError: If the job is not in progress.
        """
        with get_tracer().start_as_current_span(SPAN_COMPLETE_JOB) as span:
            span.set_attribute("job_id", job_id)
            async with translate_db_errors(), get_session_context(
                self._session_factory
            ) as session:
                await JobRepository(session).delete(job_id)

    async def fail(self, job_id: int, message: str) -> JobRecord:
        """
        Mark an in-progress job as permanently failed.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job is not in progress.
            ConstraintViolationError: If message is empty.
        """
        with get_tracer().start_as_current_span(SPAN_FAIL_JOB) as span:
            span.set_attribute("job_id", job_id)
            async with translate_db_errors(), get_session_context(
                self._session_factory
            ) as session:
                job = await JobRepository(session).update(
                    job_id, JobStatus.FAILED, message
                )

        logger.warning(
            "Job failed permanently",
            extra={"job_id": job_id, "error": message},
        )
        return job

    async def requeue(self, job_id: int) -> JobRecord:
        """
        Return an in-progress job to ready.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job is not in progress.
        """
        with get_tracer().start_as_current_span(SPAN_REQUEUE_JOB) as span:
            span.set_attribute("job_id", job_id)
            return await self._claims.requeue(job_id)

    async def process(self, handler: JobHandler) -> ProcessOutcome | None:
        """
        Claim one job and resolve it according to ``handler``'s verdict.

        - ``Success()``: the job is completed and removed.
        - ``Requeue()``: the job goes back to ready.
        - ``Fail(message)``: the job is marked failed with ``message``.
        - handler raises, or the task is cancelled mid-handler: the job is
          requeued and the exception re-raised.

        Args:
            handler: Async callable receiving the claimed job.

        Returns:
            What happened to the job, or None if nothing was ready.
        """
        job = await self.claim()
        if job is None:
            return None

        start_time = time.monotonic()

        with job_context(job.id), get_tracer().start_as_current_span(
            SPAN_PROCESS_JOB
        ) as span:
            span.set_attribute("job_id", job.id)
            try:
                flow = await handler(job)
            except asyncio.CancelledError:
                logger.warning("Cancelled while handling job, requeueing")
                await asyncio.shield(self.requeue(job.id))
                raise
            except Exception:
                logger.exception("Handler raised, requeueing job")
                await self.requeue(job.id)
                raise

            try:
                await self._resolve(job, flow)
            except (TypeError, ConstraintViolationError):
                await self.requeue(job.id)
                raise
            span.set_attribute("outcome", type(flow).__name__)

        duration = time.monotonic() - start_time
        logger.info(
            "Processed job",
            extra={
                "job_id": job.id,
                "outcome": type(flow).__name__,
                "duration": f"{duration:.3f}s",
            },
        )
        return ProcessOutcome(job=job, flow=flow, duration_seconds=duration)

    async def _resolve(self, job: JobRecord, flow: ProcessFlow) -> None:
        if isinstance(flow, Success):
            await self.complete(job.id)
        elif isinstance(flow, Requeue):
            await self.requeue(job.id)
        elif isinstance(flow, Fail):
            await self.fail(job.id, flow.message)
        else:
            raise TypeError(
                f"Handler must return Success, Requeue or Fail, got {flow!r}"
            )

    async def _with_storage_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
    ) -> T:
        """Run an operation that is safe to repeat, retrying storage faults."""
        attempt = 0
        while True:
            try:
                return await operation()
            except StorageFaultError as e:
                if attempt >= self.storage_retry_attempts:
                    raise
                delay = backoff_delay(
                    attempt,
                    self._storage_retry_base,
                    self._storage_retry_base * 16,
                )
                logger.warning(
                    f"Storage fault during {name}, retrying in {delay:.2f}s",
                    extra={"attempt": attempt + 1, "error": str(e)},
                )
                attempt += 1
                await asyncio.sleep(delay)
