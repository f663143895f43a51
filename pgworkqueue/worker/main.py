"""
Worker process for executing jobs.

The worker repeatedly claims one job, hands it to the configured handler,
and resolves it according to the handler's verdict. Abandoned claims are
not recovered here; that is the job of an external liveness monitor
calling Queue.requeue.
"""

import asyncio
import logging
import os
import signal

from pgworkqueue.config import get_settings
from pgworkqueue.db import close_db, create_schema, get_engine, init_db
from pgworkqueue.errors import StorageFaultError
from pgworkqueue.observability.logging import bind_context, clear_context, setup_logging
from pgworkqueue.observability.tracing import instrument_sqlalchemy, setup_tracing
from pgworkqueue.queue.api import Queue
from pgworkqueue.retry import backoff_delay
from pgworkqueue.types.job import JobHandler, ProcessOutcome
from pgworkqueue.worker.handlers import load_handler

logger = logging.getLogger(__name__)

# Cap on the error backoff, as a multiple of the poll interval
MAX_ERROR_BACKOFF_FACTOR = 30


class Worker:
    """
    Job worker that polls the queue and executes jobs.

    Features:
    - Exclusive claims through the queue's claim protocol
    - Several concurrent processing loops per worker
    - Graceful shutdown on SIGTERM/SIGINT: in-flight jobs finish first
    """

    def __init__(
        self,
        queue: Queue,
        handler: JobHandler,
        worker_id: str | None = None,
        poll_interval: float | None = None,
        concurrency: int | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: Queue to pull jobs from.
            handler: Async callable that decides each job's outcome.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            poll_interval: Seconds between polls when the queue is empty.
            concurrency: Number of jobs processed at the same time.
        """
        settings = get_settings()

        self.queue = queue
        self.handler = handler
        self.worker_id = (
            worker_id or settings.worker_id or f"{os.uname().nodename}-{os.getpid()}"
        )
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds
        self.concurrency = max(1, concurrency or settings.worker_concurrency)

        self._running = False
        self._stop_event = asyncio.Event()
        self.processed = 0

    async def start(self) -> None:
        """Start the worker and block until it is stopped."""
        bind_context(worker_id=self.worker_id)
        logger.info(
            "Worker starting",
            extra={"worker_id": self.worker_id, "concurrency": self.concurrency},
        )

        self._running = True
        self._stop_event.clear()

        loops = [
            asyncio.create_task(self._loop(slot)) for slot in range(self.concurrency)
        ]
        await asyncio.gather(*loops)

        logger.info(
            "Worker stopped",
            extra={"worker_id": self.worker_id, "processed": self.processed},
        )
        clear_context()

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False
        self._stop_event.set()

    async def run_once(self) -> ProcessOutcome | None:
        """
        Process at most one job (for testing or cron-style execution).

        Returns:
            The outcome, or None if the queue was empty.
        """
        outcome = await self.queue.process(self.handler)
        if outcome is not None:
            self.processed += 1
        return outcome

    async def _loop(self, slot: int) -> None:
        # Consecutive errors in this slot; a job whose handler keeps raising
        # is requeued at the head of the queue, so back off before reclaiming
        errors = 0
        while self._running:
            try:
                outcome = await self.run_once()
                errors = 0
                if outcome is None:
                    await self._idle()

            except StorageFaultError as e:
                logger.error(
                    f"Storage fault in worker loop: {e}",
                    extra={"worker_id": self.worker_id, "slot": slot},
                )
                await self._idle(self._error_delay(errors))
                errors += 1

            except Exception as e:
                # The job was requeued by Queue.process before this surfaced
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={
                        "worker_id": self.worker_id,
                        "slot": slot,
                        "consecutive_errors": errors + 1,
                    },
                )
                await self._idle(self._error_delay(errors))
                errors += 1

    def _error_delay(self, errors: int) -> float:
        return backoff_delay(
            errors,
            self.poll_interval,
            self.poll_interval * MAX_ERROR_BACKOFF_FACTOR,
        )

    async def _idle(self, delay: float | None = None) -> None:
        try:
            await asyncio.wait_for(
                self._stop_event.wait(),
                timeout=self.poll_interval if delay is None else delay,
            )
        except asyncio.TimeoutError:
            pass


async def run_async() -> None:
    """Run the worker asynchronously."""
    settings = get_settings()
    setup_logging()

    if not settings.worker_handler:
        raise SystemExit("WORKER_HANDLER must be set to 'module:function'")
    handler = load_handler(settings.worker_handler)

    if settings.otel_enabled:
        setup_tracing()
        instrument_sqlalchemy(get_engine())

    session_factory = await init_db()
    if settings.database_create_schema:
        await create_schema()

    worker = Worker(Queue(session_factory), handler)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
