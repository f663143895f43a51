"""
Unit tests for job types.
"""

from types import SimpleNamespace

import pytest

from pgworkqueue.constants import JobStatus
from pgworkqueue.errors import ConstraintViolationError
from pgworkqueue.types.job import Failed, InProgress, JobRecord, Ready


class TestJobRecord:
    """Tests for JobRecord."""

    def test_from_row_accepts_string_status(self):
        """Test building a record from a raw result row."""
        row = SimpleNamespace(id=7, status="in-progress", item={"task": "x"}, message=None)

        job = JobRecord.from_row(row)

        assert job.id == 7
        assert job.status is JobStatus.IN_PROGRESS
        assert job.item == {"task": "x"}
        assert job.message is None

    @pytest.mark.parametrize(
        ("status", "message", "expected"),
        [
            (JobStatus.READY, None, Ready()),
            (JobStatus.IN_PROGRESS, None, InProgress()),
            (JobStatus.FAILED, "disk full", Failed("disk full")),
        ],
    )
    def test_state(self, status, message, expected):
        """Test the tagged state view."""
        job = JobRecord(id=1, status=status, item={}, message=message)
        assert job.state == expected

    def test_rejects_message_on_ready(self):
        """Test that a record cannot represent a broken invariant."""
        with pytest.raises(ConstraintViolationError):
            JobRecord(id=1, status=JobStatus.READY, item={}, message="nope")

    def test_rejects_failed_without_message(self):
        with pytest.raises(ConstraintViolationError):
            JobRecord(id=1, status=JobStatus.FAILED, item={})

    def test_is_immutable(self):
        """Test that records are frozen snapshots."""
        job = JobRecord(id=1, status=JobStatus.READY, item={})
        with pytest.raises(AttributeError):
            job.status = JobStatus.FAILED
