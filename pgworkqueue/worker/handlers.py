"""
Handler resolution for the worker process.

Handlers receive a claimed JobRecord and return Success(), Requeue() or
Fail(message). They may run more than once for the same job if a worker
dies mid-job and the job is requeued, so they should be idempotent.
"""

import asyncio
import functools
import importlib
import inspect
import logging
from typing import Any

from pgworkqueue.types.job import JobHandler, JobRecord, ProcessFlow, Success

logger = logging.getLogger(__name__)


def load_handler(path: str) -> JobHandler:
    """
    Import a handler from a ``package.module:function`` path.

    Plain (non-async) functions are run in a thread so they do not block
    the event loop.

    Raises:
        ValueError: If the path is malformed or does not name a callable.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Handler path must look like 'module:function', got {path!r}")

    module = importlib.import_module(module_name)
    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            raise ValueError(f"{path!r} does not name an attribute")

    if not callable(target):
        raise ValueError(f"{path!r} is not callable")

    logger.info(f"Loaded job handler {path}")

    if inspect.iscoroutinefunction(target):
        return target
    return _run_in_thread(target)


def _run_in_thread(func: Any) -> JobHandler:
    @functools.wraps(func)
    async def wrapper(job: JobRecord) -> ProcessFlow:
        return await asyncio.to_thread(func, job)

    return wrapper


async def log_item(job: JobRecord) -> ProcessFlow:
    """Log the payload and report success. Useful for smoke-testing a deployment."""
    logger.info("Processing job", extra={"job_id": job.id, "item": job.item})
    return Success()
