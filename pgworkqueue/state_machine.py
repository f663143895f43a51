"""
Job state machine.

Pure validation of requested status changes. Every writer in the package
goes through :func:`validate_transition` before touching the database, so
legality is decided in exactly one place.

``None`` as the current status means the job does not exist yet (enqueue);
``None`` as the target status means the job is being removed (success).
"""

from pgworkqueue.constants import JobStatus
from pgworkqueue.errors import ConstraintViolationError, InvalidTransitionError

# (current, target) pairs that may be committed
TRANSITIONS: frozenset[tuple[JobStatus | None, JobStatus | None]] = frozenset(
    {
        (None, JobStatus.READY),
        (JobStatus.READY, JobStatus.IN_PROGRESS),
        (JobStatus.IN_PROGRESS, JobStatus.FAILED),
        (JobStatus.IN_PROGRESS, JobStatus.READY),
        (JobStatus.IN_PROGRESS, None),
    }
)

TERMINAL_STATUSES: frozenset[JobStatus] = frozenset({JobStatus.FAILED})


def check_message(status: JobStatus | None, message: str | None) -> None:
    """
    Enforce that a message is present exactly when the status is FAILED.

    A whitespace-only message counts as empty: a failure reason has to say
    something. The table's check constraint only tests for NULL, so this
    is the stricter of the two layers.

    Raises:
        ConstraintViolationError: If the pair would break the invariant.
    """
    if status == JobStatus.FAILED:
        if message is None or not message.strip():
            raise ConstraintViolationError(
                "A failed job requires a non-empty message"
            )
    elif message is not None:
        raise ConstraintViolationError(
            f"Message may only be set on failed jobs, not {status}"
        )


def validate_transition(
    current: JobStatus | None,
    target: JobStatus | None,
    message: str | None = None,
) -> None:
    """
    Validate a requested ``(current, target, message)`` triple.

    Args:
        current: Status of the stored job, or None when creating one.
        target: Requested status, or None when deleting the job.
        message: Message to store alongside ``target``.

    Raises:
        InvalidTransitionError: If the status change is not legal.
        ConstraintViolationError: If ``message`` disagrees with ``target``.
    """
    if (current, target) not in TRANSITIONS:
        raise InvalidTransitionError(current, target)
    check_message(target, message)


def is_valid_transition(
    current: JobStatus | None,
    target: JobStatus | None,
    message: str | None = None,
) -> bool:
    """Return True if :func:`validate_transition` would accept the triple."""
    try:
        validate_transition(current, target, message)
    except (InvalidTransitionError, ConstraintViolationError):
        return False
    return True


def is_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_STATUSES
