"""
Unit tests for the job state machine.
"""

import pytest

from pgworkqueue.constants import JobStatus
from pgworkqueue.errors import ConstraintViolationError, InvalidTransitionError
from pgworkqueue.state_machine import (
    check_message,
    is_terminal,
    is_valid_transition,
    validate_transition,
)

READY = JobStatus.READY
IN_PROGRESS = JobStatus.IN_PROGRESS
FAILED = JobStatus.FAILED


class TestValidateTransition:
    """Tests for validate_transition."""

    @pytest.mark.parametrize(
        ("current", "target", "message"),
        [
            (None, READY, None),
            (READY, IN_PROGRESS, None),
            (IN_PROGRESS, FAILED, "disk full"),
            (IN_PROGRESS, READY, None),
            (IN_PROGRESS, None, None),
        ],
    )
    def test_legal_transitions(self, current, target, message):
        """Test that every documented transition is accepted."""
        validate_transition(current, target, message)
        assert is_valid_transition(current, target, message) is True

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (FAILED, READY),
            (FAILED, IN_PROGRESS),
            (FAILED, None),
            (READY, FAILED),
            (READY, None),
            (READY, READY),
            (IN_PROGRESS, IN_PROGRESS),
            (None, IN_PROGRESS),
            (None, FAILED),
        ],
    )
    def test_illegal_transitions(self, current, target):
        """Test that undocumented transitions are rejected."""
        message = "boom" if target == FAILED else None

        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(current, target, message)

        assert exc_info.value.current_status == current
        assert exc_info.value.target_status == target
        assert is_valid_transition(current, target, message) is False

    def test_fail_requires_message(self):
        """Test that failing without a message breaks the invariant."""
        with pytest.raises(ConstraintViolationError):
            validate_transition(IN_PROGRESS, FAILED, None)

    @pytest.mark.parametrize("message", ["", "   ", "\n"])
    def test_fail_rejects_blank_message(self, message):
        """Test that an empty or whitespace message is rejected."""
        with pytest.raises(ConstraintViolationError):
            validate_transition(IN_PROGRESS, FAILED, message)

    def test_message_on_non_failed_target_rejected(self):
        """Test that a message cannot ride along on requeue."""
        with pytest.raises(ConstraintViolationError):
            validate_transition(IN_PROGRESS, READY, "retry later")

    def test_transition_checked_before_message(self):
        """Test that an illegal transition wins over a bad message."""
        with pytest.raises(InvalidTransitionError):
            validate_transition(READY, FAILED, "")

    def test_error_message_names_statuses(self):
        """Test the human-readable transition error."""
        with pytest.raises(InvalidTransitionError, match="from ready to \\(deleted\\)"):
            validate_transition(READY, None)


class TestCheckMessage:
    """Tests for the status/message invariant."""

    def test_failed_with_message(self):
        check_message(FAILED, "disk full")

    @pytest.mark.parametrize("status", [READY, IN_PROGRESS, None])
    def test_unset_message_on_active_status(self, status):
        check_message(status, None)

    @pytest.mark.parametrize("status", [READY, IN_PROGRESS])
    def test_message_on_active_status(self, status):
        with pytest.raises(ConstraintViolationError):
            check_message(status, "oops")


def test_only_failed_is_terminal():
    """Test terminal status detection."""
    assert is_terminal(FAILED) is True
    assert is_terminal(READY) is False
    assert is_terminal(IN_PROGRESS) is False
