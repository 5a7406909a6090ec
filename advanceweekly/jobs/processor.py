"""Background execution of queued operations."""

import asyncio
import logging
import time
from typing import Any
from uuid import UUID

from advanceweekly.config import settings
from advanceweekly.errors import JobError, JobTimeoutError, PersistenceError
from advanceweekly.handlers import HandlerRegistry, JobContext, handler_registry
from advanceweekly.jobs.operations import OperationService, operation_service

logger = logging.getLogger(__name__)

UNEXPECTED_KIND = "unexpected"


class JobProcessor:
    """Claims queued operations and runs them through their handler.

    The processor never retries. A failed operation stays failed; callers
    retry by enqueueing again.
    """

    def __init__(
        self,
        operations: OperationService | None = None,
        registry: HandlerRegistry | None = None,
        poll_interval_seconds: float = settings.job_poll_interval_seconds,
        max_concurrency: int = settings.job_max_concurrency,
        max_duration_seconds: float = settings.job_max_duration_seconds,
    ):
        self._operations = operations or operation_service
        self._registry = registry or handler_registry
        self._poll_interval_seconds = poll_interval_seconds
        self._max_concurrency = max(1, max_concurrency)
        self._max_duration_seconds = max_duration_seconds
        self._running: dict[UUID, asyncio.Task] = {}
        self._worker_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    async def ensure_worker(self) -> None:
        """Start the background worker once."""
        if self._worker_task is not None and not self._worker_task.done():
            return
        async with self._lock:
            if self._worker_task is not None and not self._worker_task.done():
                return
            loop = asyncio.get_running_loop()
            self._worker_task = loop.create_task(self._worker_loop(), name="advanceweekly-job-worker")
            logger.info("Started job worker (concurrency=%d)", self._max_concurrency)

    async def stop(self) -> None:
        """Cancel the worker loop and wait for in-flight operations."""
        if self._worker_task is not None:
            self._worker_task.cancel()
            await asyncio.gather(self._worker_task, return_exceptions=True)
            self._worker_task = None
        if self._running:
            await asyncio.gather(*self._running.values(), return_exceptions=True)

    async def _worker_loop(self) -> None:
        """Continuously dispatch queued operations."""
        while True:
            try:
                dispatched = await self.dispatch_queued()
            except Exception:
                logger.exception("Job worker failed to poll for queued operations")
                dispatched = 0
            if not dispatched:
                await asyncio.sleep(self._poll_interval_seconds)

    async def dispatch_queued(self) -> int:
        """Start tasks for queued operations up to the concurrency limit. Returns how many started."""
        free = self._max_concurrency - len(self._running)
        if free <= 0:
            return 0

        dispatched = 0
        for operation_id in await self._operations.next_queued(limit=free + len(self._running)):
            if dispatched >= free:
                break
            if operation_id in self._running:
                continue
            task = asyncio.create_task(self._run(operation_id), name=f"operation-{operation_id}")
            self._running[operation_id] = task
            task.add_done_callback(lambda _, key=operation_id: self._running.pop(key, None))
            dispatched += 1
        return dispatched

    async def _run(self, operation_id: UUID) -> None:
        try:
            await self.process(operation_id)
        except PersistenceError:
            logger.exception("Could not record the outcome of operation %s", operation_id)

    async def process(self, operation_id: UUID) -> bool:
        """Claim and run one operation. Returns False if another processor claimed it first."""
        if not await self._operations.claim(operation_id):
            logger.debug("Operation %s was already claimed", operation_id)
            return False

        operation = await self._operations.get(operation_id)
        deadline = time.monotonic() + self._max_duration_seconds
        logger.info("Processing %s operation %s for user %s", operation.job_type.value, operation.id, operation.user_id)

        async def report(progress: int, step: str | None = None) -> None:
            self._check_deadline(deadline)
            await self._operations.report_progress(operation_id, progress, step)

        try:
            handler = self._registry.get(operation.job_type)
            payload = handler.decode(operation.input_data)
            handler.validate(payload)
            context = JobContext(
                operation_id=operation.id,
                user_id=operation.user_id,
                reporter=report,
                metadata=dict(operation.extra_metadata or {}),
            )
            result = await handler.process(payload, context)
        except JobError as exc:
            logger.warning("Operation %s failed: %s", operation_id, exc.classified())
            await self._operations.fail(operation_id, exc.kind, exc.classified())
            return True
        except Exception as exc:
            logger.exception("Operation %s failed unexpectedly", operation_id)
            await self._operations.fail(operation_id, UNEXPECTED_KIND, f"{UNEXPECTED_KIND}: {exc}")
            return True

        await self._complete(operation_id, result)
        return True

    async def _complete(self, operation_id: UUID, result: dict[str, Any]) -> None:
        try:
            await self._operations.complete(operation_id, result)
        except PersistenceError as exc:
            logger.error("Operation %s finished but its result could not be stored", operation_id)
            await self._operations.fail(operation_id, exc.kind, exc.classified())
            return
        logger.info("Operation %s completed", operation_id)

    def _check_deadline(self, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise JobTimeoutError(f"operation exceeded {self._max_duration_seconds:g}s")


# Global singleton instance
job_processor = JobProcessor()
