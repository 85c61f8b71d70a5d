"""Single-consumer background job queue for extraction jobs.

One worker task drains a FIFO ``asyncio.Queue`` and runs the extraction
orchestrator for one job at a time, under a per-job timeout. Jobs complete in
submission order; there is no concurrency between jobs. Every status
transition is saved to the result store.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
import time
from typing import Any

import structlog

from llm_kg_pipeline.config import JOB_TIMEOUT_SECONDS
from llm_kg_pipeline.exceptions import JobCancelledError, JobTimeoutError
from llm_kg_pipeline.extraction.orchestrator import ExtractionOrchestrator
from llm_kg_pipeline.models import ContentInput, Job, JobProgress, JobStatus, ProcessingResult
from llm_kg_pipeline.storage import InMemoryResultStore, ResultStore

logger = structlog.get_logger(__name__)


@dataclass
class QueueStats:
    """Queue-wide processing statistics.

    Attributes:
        total_processed: Jobs that reached a terminal state in the worker.
        successful: Jobs completed.
        failed: Jobs failed (including timeouts).
        cancelled: Jobs cancelled, whether pending or in flight.
        average_processing_time: Running mean wall time of successful jobs (seconds).
        queue_length: Jobs waiting in the queue.
        current_job_id: Job being processed, if any.
        is_processing: Whether the worker task is running.
    """

    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    cancelled: int = 0
    average_processing_time: float = 0.0
    queue_length: int = 0
    current_job_id: str | None = None
    is_processing: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display."""
        return asdict(self)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JobQueue:
    """FIFO job queue with a single worker.

    Attributes:
        orchestrator: Runs the extraction for each job.
        store: Persists job transitions and results.
        job_timeout: Default per-job timeout in seconds.

    Example:
        >>> queue = JobQueue(orchestrator)
        >>> queue.start()
        >>> job = await queue.submit(content)
        >>> await queue.join()
        >>> queue.get_job(job.id).status
        <JobStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        orchestrator: ExtractionOrchestrator,
        store: ResultStore | None = None,
        *,
        job_timeout: float = JOB_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the queue.

        Args:
            orchestrator: Runs the extraction for each job.
            store: Result store. Uses an in-memory store if not provided.
            job_timeout: Default per-job timeout in seconds.
        """
        if job_timeout <= 0:
            msg = "job_timeout must be positive"
            raise ValueError(msg)
        self.orchestrator = orchestrator
        self.store = store if store is not None else InMemoryResultStore()
        self.job_timeout = job_timeout

        self._queue: asyncio.Queue[Job] = asyncio.Queue()
        self._jobs: dict[str, Job] = {}
        self._current: Job | None = None
        self._worker: asyncio.Task[None] | None = None
        self._stats = QueueStats()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Whether the worker task is alive."""
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker task (no-op if already running)."""
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="llm-kg-job-worker")
        logger.info("Job worker started", pending=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every submitted job has been taken off the queue and finished."""
        await self._queue.join()

    async def stop(self, *, drain: bool = True) -> None:
        """Stop the worker.

        Args:
            drain: Finish all queued jobs first. When False, an in-flight job
                is cancelled and pending jobs stay queued for a later start().
        """
        if self._worker is None:
            return
        if drain:
            await self.join()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info("Job worker stopped", pending=self._queue.qsize())

    # -------------------------------------------------------------------------
    # Producer API
    # -------------------------------------------------------------------------

    async def submit(self, content: ContentInput) -> Job:
        """Append a pending job for ``content`` to the queue tail.

        Args:
            content: Content to process.

        Returns:
            The created job (status PENDING).
        """
        job = Job.from_content(content)
        self._jobs[job.id] = job
        await self.store.save_job(job)
        self._queue.put_nowait(job)
        logger.info(
            "Job queued",
            job_id=job.id,
            session_id=job.session_id,
            content_id=job.content_id,
            pending=self._queue.qsize(),
        )
        return job

    async def cancel(self, job_id: str) -> bool:
        """Cancel a job.

        A pending job is marked cancelled and will never start. An in-flight
        job is cancelled cooperatively before its next provider call.

        Returns:
            True if the job was pending or in flight, False if unknown or
            already terminal.
        """
        job = self._jobs.get(job_id)
        if job is None or job.status.is_terminal:
            return False

        if job.status == JobStatus.PENDING:
            job.status = JobStatus.CANCELLED
            job.completed_at = _utcnow()
            self._stats.cancelled += 1
            await self.store.save_job(job)
            logger.info("Pending job cancelled", job_id=job_id)
        else:
            job.cancel_requested = True
            logger.info("Cancellation requested for in-flight job", job_id=job_id)
        return True

    def get_job(self, job_id: str) -> Job | None:
        """Return the live job object, if known to this queue."""
        return self._jobs.get(job_id)

    def get_progress(self, session_id: str) -> JobProgress:
        """Report progress for one session.

        The remaining-time estimate is ``(pending + in-flight) × average``
        processing time of successful jobs so far.
        """
        jobs = [job for job in self._jobs.values() if job.session_id == session_id]
        counts = {status: 0 for status in JobStatus}
        for job in jobs:
            counts[job.status] += 1

        current = self._current if self._current and self._current.session_id == session_id else None
        remaining = counts[JobStatus.PENDING] + counts[JobStatus.PROCESSING]

        return JobProgress(
            session_id=session_id,
            total_jobs=len(jobs),
            completed_jobs=counts[JobStatus.COMPLETED],
            failed_jobs=counts[JobStatus.FAILED],
            cancelled_jobs=counts[JobStatus.CANCELLED],
            pending_jobs=counts[JobStatus.PENDING],
            current_content_id=current.content_id if current else None,
            estimated_time_remaining_seconds=remaining * self._stats.average_processing_time,
        )

    def stats(self) -> QueueStats:
        """Return a snapshot of queue statistics."""
        snapshot = QueueStats(**asdict(self._stats))
        snapshot.queue_length = self._queue.qsize()
        snapshot.current_job_id = self._current.id if self._current else None
        snapshot.is_processing = self.is_running
        return snapshot

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job.status != JobStatus.PENDING:
                    logger.debug("Skipping job", job_id=job.id, status=job.status.value)
                    continue
                await self._process_job(job)
            except Exception as e:
                logger.exception("Job worker error", job_id=job.id)
                if not job.status.is_terminal:
                    job.status = JobStatus.FAILED
                    job.error = str(e) or type(e).__name__
                    job.completed_at = _utcnow()
                    self._stats.total_processed += 1
                    self._stats.failed += 1
            finally:
                self._current = None
                self._queue.task_done()

    async def _process_job(self, job: Job) -> None:
        start = time.perf_counter()
        self._current = job
        job.status = JobStatus.PROCESSING
        job.started_at = _utcnow()
        save_error = await self._save_job(job)
        if save_error is not None:
            await self._finish(job, JobStatus.FAILED, error=save_error)
            return

        timeout = job.options.timeout_seconds or self.job_timeout
        logger.info("Processing job", job_id=job.id, content_id=job.content_id, timeout=timeout)

        try:
            result = await asyncio.wait_for(
                self.orchestrator.process_content(
                    job.content_ref.text,
                    job.options,
                    cancel_check=lambda: job.cancel_requested,
                ),
                timeout=timeout,
            )
        except JobCancelledError:
            await self._finish(job, JobStatus.CANCELLED, error="Cancelled by caller")
            return
        except asyncio.TimeoutError:
            # Partial results are discarded.
            await self._finish(job, JobStatus.FAILED, error=str(JobTimeoutError(job.id, timeout)))
            return
        except asyncio.CancelledError:
            await self._finish(job, JobStatus.CANCELLED, error="Worker stopped")
            raise
        except Exception as e:
            logger.exception("Job raised unexpectedly", job_id=job.id)
            await self._finish(job, JobStatus.FAILED, error=str(e) or type(e).__name__)
            return

        try:
            await self.store.put_result(job.id, result)
        except Exception as e:
            logger.exception("Storing result failed", job_id=job.id)
            await self._finish(job, JobStatus.FAILED, error=str(e) or type(e).__name__)
            return

        if result.is_failure:
            await self._finish(job, JobStatus.FAILED, error=result.processing.error or "Extraction failed")
            return

        await self._finish(job, JobStatus.COMPLETED, result=result)
        if job.status == JobStatus.COMPLETED:
            self._record_success(time.perf_counter() - start)

    async def _save_job(self, job: Job) -> str | None:
        """Persist ``job`` and return the error message if the store failed."""
        try:
            await self.store.save_job(job)
        except Exception as e:
            logger.exception("Saving job failed", job_id=job.id, status=job.status.value)
            return str(e) or type(e).__name__
        return None

    async def _finish(
        self,
        job: Job,
        status: JobStatus,
        *,
        error: str | None = None,
        result: ProcessingResult | None = None,
    ) -> None:
        job.status = status
        job.error = error
        job.completed_at = _utcnow()
        save_error = await self._save_job(job)
        if save_error is not None and status != JobStatus.FAILED:
            # A job whose final state was not persisted counts as failed.
            job.status = JobStatus.FAILED
            job.error = save_error
            result = None

        self._stats.total_processed += 1
        if job.status == JobStatus.FAILED:
            self._stats.failed += 1
        elif job.status == JobStatus.CANCELLED:
            self._stats.cancelled += 1

        if result is not None:
            logger.info(
                "Job completed",
                job_id=job.id,
                entities=len(result.entities),
                relationships=len(result.relationships),
                cost=round(result.processing.total_cost, 6),
            )
        else:
            logger.warning("Job ended without result", job_id=job.id, status=job.status.value, error=job.error)

    def _record_success(self, elapsed: float) -> None:
        self._stats.successful += 1
        n = self._stats.successful
        self._stats.average_processing_time += (elapsed - self._stats.average_processing_time) / n
