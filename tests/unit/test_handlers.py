"""
Unit tests for job handler loading.
"""

import inspect

import pytest

from pgworkqueue.constants import JobStatus
from pgworkqueue.types.job import JobRecord, Success
from pgworkqueue.worker.handlers import load_handler, log_item


class TestLoadHandler:
    """Tests for load_handler."""

    @pytest.fixture
    def job(self) -> JobRecord:
        """Create a claimed job."""
        return JobRecord(id=1, status=JobStatus.IN_PROGRESS, item={"task": "x"})

    def test_loads_async_handler_as_is(self):
        """Test that coroutine functions are returned unchanged."""
        handler = load_handler("pgworkqueue.worker.handlers:log_item")
        assert handler is log_item

    async def test_wraps_sync_handler(self):
        """Test that plain functions are run in a thread."""
        handler = load_handler("builtins:repr")

        assert inspect.iscoroutinefunction(handler)
        assert await handler("job") == "'job'"

    @pytest.mark.parametrize("path", ["no_colon", ":func", "module:", ""])
    def test_malformed_path(self, path):
        with pytest.raises(ValueError, match="module:function"):
            load_handler(path)

    def test_missing_attribute(self):
        with pytest.raises(ValueError, match="does not name an attribute"):
            load_handler("pgworkqueue.worker.handlers:nope")

    def test_not_callable(self):
        with pytest.raises(ValueError, match="not callable"):
            load_handler("pgworkqueue:__version__")

    def test_missing_module(self):
        with pytest.raises(ModuleNotFoundError):
            load_handler("pgworkqueue.does_not_exist:handler")

    async def test_log_item_reports_success(self, job: JobRecord):
        """Test the built-in smoke-test handler."""
        assert await log_item(job) == Success()
