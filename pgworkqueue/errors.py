"""
Queue error hierarchy.

Every error is raised synchronously to the caller of the queue API.
Lost compare-and-swap races inside the claim protocol are not errors and
never surface here.
"""


class QueueError(Exception):
    """Base exception for work queue errors."""


class JobNotFoundError(QueueError):
    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class InvalidTransitionError(QueueError):
    def __init__(self, current_status, target_status):
        self.current_status = current_status
        self.target_status = target_status
        current = current_status.value if current_status is not None else "(none)"
        target = target_status.value if target_status is not None else "(deleted)"
        super().__init__(f"Cannot transition from {current} to {target}")


class ConstraintViolationError(QueueError):
    """A write would break the rule that message is set iff status is failed."""


class StorageFaultError(QueueError):
    """
    The database was unavailable or aborted the transaction.

    The driver exception is chained as ``__cause__``. Callers may retry the
    whole operation, but retrying ``enqueue`` creates a duplicate job.
    """
