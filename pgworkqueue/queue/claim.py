"""
Claim protocol.

Hands each ready job to exactly one caller. Two strategies are available:

- ``skip_locked``: one UPDATE whose target row is picked by a
  ``SELECT ... FOR UPDATE SKIP LOCKED`` subquery. Concurrent claimers
  skip each other's locked rows and never wait on them.
- ``cas``: optimistic loop. Read the oldest ready id, then
  ``UPDATE ... WHERE id = :id AND status = 'ready'``. Zero rows updated
  means another claimer won; back off and try the next candidate.

Lost races are retried internally and are never reported to the caller.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgworkqueue.config import get_settings
from pgworkqueue.constants import ClaimStrategy, JobStatus
from pgworkqueue.db.connection import get_session_context
from pgworkqueue.db.repository import JobRepository, translate_db_errors
from pgworkqueue.retry import backoff_delay
from pgworkqueue.types.job import JobRecord

logger = logging.getLogger(__name__)


class ClaimProtocol:
    """Select-and-mark of ready jobs, plus requeue of claimed ones."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        strategy: ClaimStrategy | None = None,
        max_attempts: int | None = None,
        backoff_base_seconds: float | None = None,
        backoff_max_seconds: float | None = None,
    ):
        """
        Initialize the claim protocol.

        Args:
            session_factory: Factory producing one session per attempt.
            strategy: Claim strategy. Defaults to settings.
            max_attempts: Upper bound on CAS attempts per claim.
            backoff_base_seconds: First CAS retry delay.
            backoff_max_seconds: Cap on CAS retry delay.
        """
        settings = get_settings()

        self._session_factory = session_factory
        self.strategy = ClaimStrategy(strategy or settings.claim_strategy)
        self.max_attempts = max(1, max_attempts or settings.claim_max_attempts)
        self.backoff_base = (
            backoff_base_seconds
            if backoff_base_seconds is not None
            else settings.claim_backoff_base_seconds
        )
        self.backoff_max = (
            backoff_max_seconds
            if backoff_max_seconds is not None
            else settings.claim_backoff_max_seconds
        )

    async def claim_next(self) -> JobRecord | None:
        """
        Claim the oldest ready job.

        Returns:
            The job, now persisted as in progress, or None when no job is
            ready.
        """
        if self.strategy == ClaimStrategy.SKIP_LOCKED:
            job = await self._claim_skip_locked()
        else:
            job = await self._claim_cas()

        if job is not None:
            logger.info(
                "Claimed job",
                extra={"job_id": job.id, "strategy": self.strategy.value},
            )
        return job

    async def requeue(self, job_id: int) -> JobRecord:
        """
        Return an in-progress job to ready and clear its message.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job is not in progress.
        """
        async with translate_db_errors(), get_session_context(
            self._session_factory
        ) as session:
            job = await JobRepository(session).update(job_id, JobStatus.READY, None)

        logger.info("Requeued job", extra={"job_id": job_id})
        return job

    async def _claim_skip_locked(self) -> JobRecord | None:
        async with translate_db_errors(), get_session_context(
            self._session_factory
        ) as session:
            return await JobRepository(session).claim_skip_locked()

    async def _claim_cas(self) -> JobRecord | None:
        for attempt in range(self.max_attempts):
            async with translate_db_errors(), get_session_context(
                self._session_factory
            ) as session:
                repo = JobRepository(session)

                job_id = await repo.first_ready_id()
                if job_id is None:
                    return None

                job = await repo.compare_and_set(
                    job_id, JobStatus.READY, JobStatus.IN_PROGRESS
                )

            if job is not None:
                return job

            logger.debug(
                "Lost claim race",
                extra={"job_id": job_id, "attempt": attempt + 1},
            )
            if attempt + 1 < self.max_attempts:
                await asyncio.sleep(
                    backoff_delay(attempt, self.backoff_base, self.backoff_max)
                )

        logger.warning(
            f"Gave up claiming after {self.max_attempts} lost races",
            extra={"max_attempts": self.max_attempts},
        )
        return None
