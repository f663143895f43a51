"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - (new) -> READY (enqueue)
    - READY -> IN_PROGRESS (claim)
    - IN_PROGRESS -> FAILED (permanent failure, message required)
    - IN_PROGRESS -> READY (requeue)
    - IN_PROGRESS -> (deleted) (success)
    """

    READY = "ready"
    IN_PROGRESS = "in-progress"
    FAILED = "failed"


class ClaimStrategy(StrEnum):
    """How a worker wins exclusive ownership of a ready job."""

    SKIP_LOCKED = "skip_locked"
    CAS = "cas"


# Database names
QUEUE_TABLE = "queue"
STATUS_ENUM_NAME = "queue_status"
MESSAGE_CHECK_NAME = "ck_queue_message_iff_failed"

# Trace span names
SPAN_ENQUEUE_JOB = "enqueue_job"
SPAN_CLAIM_JOB = "claim_job"
SPAN_COMPLETE_JOB = "complete_job"
SPAN_FAIL_JOB = "fail_job"
SPAN_REQUEUE_JOB = "requeue_job"
SPAN_PROCESS_JOB = "process_job"
