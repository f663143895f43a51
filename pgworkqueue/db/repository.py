"""
Record store for queue rows.
Implements the data access patterns for job management.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from pgworkqueue.constants import JobStatus
from pgworkqueue.db.models import QueueItem
from pgworkqueue.errors import (
    ConstraintViolationError,
    JobNotFoundError,
    StorageFaultError,
)
from pgworkqueue.state_machine import validate_transition
from pgworkqueue.types.job import JobRecord

logger = logging.getLogger(__name__)

_COLUMNS = (QueueItem.id, QueueItem.status, QueueItem.item, QueueItem.message)


@asynccontextmanager
async def translate_db_errors() -> AsyncIterator[None]:
    """
    Map driver exceptions onto the queue error hierarchy.

    Integrity failures (the status/message check, NOT NULL item) become
    ConstraintViolationError; anything else the driver raises, including a
    dropped connection, becomes StorageFaultError.
    """
    try:
        yield
    except IntegrityError as e:
        raise ConstraintViolationError(str(e.orig)) from e
    except (DBAPIError, OSError) as e:
        raise StorageFaultError(f"Storage fault: {e}") from e


class JobRepository:
    """
    Repository for queue database operations.

    Every write is validated by the state machine against the row's current
    status inside the caller's transaction; the table's check constraint
    backs the same rule at the storage layer. The repository never commits,
    the caller owns the transaction.

    Implements atomic operations for:
    - Insertion of ready jobs
    - Claiming with FOR UPDATE SKIP LOCKED
    - Conditional (compare-and-set) status updates
    - Deletion on success
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def insert(self, item: Any) -> JobRecord:
        """
        Create a new job in READY status with no message.

        Args:
            item: JSON-serializable payload. Stored as-is.

        Returns:
            The stored job.

        Raises:
            ConstraintViolationError: If item is None.
        """
        if item is None:
            raise ConstraintViolationError("A job requires an item")
        validate_transition(None, JobStatus.READY)

        stmt = (
            insert(QueueItem)
            .values(item=item, status=JobStatus.READY, message=None)
            .returning(*_COLUMNS)
        )
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        job = JobRecord.from_row(result.one())

        logger.info("Enqueued job", extra={"job_id": job.id})
        return job

    async def get(self, job_id: int) -> JobRecord | None:
        """
        Get a job by ID.

        Returns:
            The job or None if not found.
        """
        stmt = select(*_COLUMNS).where(QueueItem.id == job_id)
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        row = result.one_or_none()
        return JobRecord.from_row(row) if row is not None else None

    async def lock(self, job_id: int) -> JobRecord | None:
        """
        Get a job by ID and hold its row lock until the transaction ends.

        Returns:
            The job or None if not found.
        """
        stmt = select(*_COLUMNS).where(QueueItem.id == job_id).with_for_update()
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        row = result.one_or_none()
        return JobRecord.from_row(row) if row is not None else None

    async def update(
        self,
        job_id: int,
        new_status: JobStatus,
        new_message: str | None = None,
    ) -> JobRecord:
        """
        Apply a status transition to an existing job.

        The row is locked first so the validated current status cannot
        change before the write lands.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the transition is illegal.
            ConstraintViolationError: If the message disagrees with the status.
        """
        current = await self.lock(job_id)
        if current is None:
            raise JobNotFoundError(job_id)

        validate_transition(current.status, new_status, new_message)

        stmt = (
            update(QueueItem)
            .where(QueueItem.id == job_id)
            .values(status=new_status, message=new_message)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        job = JobRecord.from_row(result.one())

        logger.info(
            "Job status changed",
            extra={
                "job_id": job_id,
                "from_status": current.status.value,
                "to_status": new_status.value,
            },
        )
        return job

    async def delete(self, job_id: int) -> JobRecord:
        """
        Remove a job permanently.

        Returns:
            The job as it was before deletion.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job is not in progress.
        """
        current = await self.lock(job_id)
        if current is None:
            raise JobNotFoundError(job_id)

        validate_transition(current.status, None)

        stmt = (
            delete(QueueItem)
            .where(QueueItem.id == job_id)
            .execution_options(synchronize_session=False)
        )
        async with translate_db_errors():
            await self._session.execute(stmt)

        logger.info("Deleted completed job", extra={"job_id": job_id})
        return current

    async def claim_skip_locked(self) -> JobRecord | None:
        """
        Mark the oldest ready job as in progress using FOR UPDATE SKIP LOCKED.

        This is the critical path for job distribution. Rows locked by a
        concurrent claimer are skipped instead of waited on, so two callers
        can never receive the same job.

        Returns:
            The claimed job, or None if no unlocked ready job exists.
        """
        validate_transition(JobStatus.READY, JobStatus.IN_PROGRESS)

        # Aliased so the subquery is not correlated to the UPDATE target
        ready = aliased(QueueItem, name="ready")
        candidate = (
            select(ready.id)
            .where(ready.status == JobStatus.READY)
            .order_by(ready.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(QueueItem)
            .where(QueueItem.id == candidate)
            .values(status=JobStatus.IN_PROGRESS, message=None)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        row = result.one_or_none()
        return JobRecord.from_row(row) if row is not None else None

    async def first_ready_id(self) -> int | None:
        """
        Get the id of the oldest ready job without locking it.

        Returns:
            The job id or None if no job is ready.
        """
        stmt = (
            select(QueueItem.id)
            .where(QueueItem.status == JobStatus.READY)
            .order_by(QueueItem.id.asc())
            .limit(1)
        )
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def compare_and_set(
        self,
        job_id: int,
        expected: JobStatus,
        new_status: JobStatus,
        new_message: str | None = None,
    ) -> JobRecord | None:
        """
        Change a job's status only if it still has the expected status.

        Returns:
            The updated job, or None if the row is gone or its status moved
            on (another writer won the race).
        """
        validate_transition(expected, new_status, new_message)

        stmt = (
            update(QueueItem)
            .where(QueueItem.id == job_id, QueueItem.status == expected)
            .values(status=new_status, message=new_message)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        async with translate_db_errors():
            result = await self._session.execute(stmt)
        row = result.one_or_none()
        return JobRecord.from_row(row) if row is not None else None
