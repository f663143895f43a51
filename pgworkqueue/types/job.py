"""
Job-related type definitions.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

from pgworkqueue.constants import JobStatus
from pgworkqueue.state_machine import check_message


# ============================================================================
# Logical job state
# ============================================================================


@dataclass(frozen=True)
class Ready:
    """Waiting to be claimed."""


@dataclass(frozen=True)
class InProgress:
    """Owned by exactly one worker."""


@dataclass(frozen=True)
class Failed:
    """Permanently failed with an explanatory message."""

    message: str


JobState = Union[Ready, InProgress, Failed]


@dataclass(frozen=True)
class JobRecord:
    """
    Detached snapshot of a queue row.

    Returned by every repository and queue operation so callers never hold
    a live ORM instance bound to a closed session.
    """

    id: int
    status: JobStatus
    item: Any
    message: str | None = None

    def __post_init__(self) -> None:
        check_message(self.status, self.message)

    @classmethod
    def from_row(cls, row: Any) -> "JobRecord":
        """Build a record from an ORM instance or a result row."""
        return cls(
            id=row.id,
            status=JobStatus(row.status),
            item=row.item,
            message=row.message,
        )

    @property
    def state(self) -> JobState:
        """The status/message pair as a tagged state."""
        if self.status == JobStatus.FAILED:
            return Failed(self.message)
        if self.status == JobStatus.IN_PROGRESS:
            return InProgress()
        return Ready()


# ============================================================================
# Processing outcomes
# ============================================================================


@dataclass(frozen=True)
class Success:
    """The job is done and is removed from the queue."""


@dataclass(frozen=True)
class Requeue:
    """The job goes back to ready for another worker."""


@dataclass(frozen=True)
class Fail:
    """The job failed permanently."""

    message: str


ProcessFlow = Union[Success, Requeue, Fail]

# Type alias for handlers passed to Queue.process
JobHandler = Callable[[JobRecord], Awaitable[ProcessFlow]]


@dataclass(frozen=True)
class ProcessOutcome:
    """What happened to a job handed to a handler by Queue.process."""

    job: JobRecord
    flow: ProcessFlow
    duration_seconds: float
