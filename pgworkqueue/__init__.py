"""
pgworkqueue

A durable FIFO work queue on a PostgreSQL table. Workers claim jobs with
row-level locking (or an optimistic compare-and-set loop), so every job is
held by at most one worker, and resolve them as completed, failed or
requeued.
"""

__version__ = "1.0.0"

from pgworkqueue.constants import ClaimStrategy, JobStatus  # noqa: E402
from pgworkqueue.errors import (  # noqa: E402
    ConstraintViolationError,
    InvalidTransitionError,
    JobNotFoundError,
    QueueError,
    StorageFaultError,
)
from pgworkqueue.queue import ClaimProtocol, Queue  # noqa: E402
from pgworkqueue.types import Fail, JobRecord, Requeue, Success  # noqa: E402

__all__ = [
    "Queue",
    "ClaimProtocol",
    "ClaimStrategy",
    "JobStatus",
    "JobRecord",
    "Success",
    "Requeue",
    "Fail",
    "QueueError",
    "JobNotFoundError",
    "InvalidTransitionError",
    "ConstraintViolationError",
    "StorageFaultError",
]
