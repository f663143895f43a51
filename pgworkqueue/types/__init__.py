"""
Type definitions for the work queue.
"""

from pgworkqueue.types.job import (
    Fail,
    Failed,
    InProgress,
    JobHandler,
    JobRecord,
    JobState,
    ProcessFlow,
    ProcessOutcome,
    Ready,
    Requeue,
    Success,
)

__all__ = [
    # Job state
    "JobRecord",
    "JobState",
    "Ready",
    "InProgress",
    "Failed",
    # Processing
    "ProcessFlow",
    "ProcessOutcome",
    "JobHandler",
    "Success",
    "Requeue",
    "Fail",
]
