"""Result store interface and an in-memory implementation.

The job queue persists every job transition and each completed result
through the ``ResultStore`` protocol. Relational persistence is out of scope
for this package; ``InMemoryResultStore`` backs the CLI and tests and also
offers the entity search and aggregate statistics used for reporting.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import structlog

from llm_kg_pipeline.models import Entity, EntityType, Job, JobStatus, ProcessingResult

logger = structlog.get_logger(__name__)


@runtime_checkable
class ResultStore(Protocol):
    """Protocol defining the result store interface."""

    async def save_job(self, job: Job) -> None:
        """Persist the current state of a job (insert or update)."""
        ...

    async def put_result(self, job_id: str, result: ProcessingResult) -> None:
        """Persist the result of a job."""
        ...

    async def get_result(self, job_id: str) -> ProcessingResult | None:
        """Return the stored result for a job, if any."""
        ...


class InMemoryResultStore:
    """Dictionary-backed result store.

    Jobs are stored as snapshots so later mutation of a live Job object does
    not change what was saved.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._jobs: dict[str, Job] = {}
        self._results: dict[str, ProcessingResult] = {}

    async def save_job(self, job: Job) -> None:
        """Persist a snapshot of the job."""
        self._jobs[job.id] = job.model_copy(deep=True)
        logger.debug("Job saved", job_id=job.id, status=job.status.value)

    async def put_result(self, job_id: str, result: ProcessingResult) -> None:
        """Persist a job result (results are immutable, stored as-is)."""
        self._results[job_id] = result

    async def get_result(self, job_id: str) -> ProcessingResult | None:
        """Return the stored result for a job, if any."""
        return self._results.get(job_id)

    async def get_job(self, job_id: str) -> Job | None:
        """Return the last saved snapshot of a job, if any."""
        return self._jobs.get(job_id)

    async def jobs_for_session(self, session_id: str) -> list[Job]:
        """Return saved jobs for a session in creation order."""
        jobs = [job for job in self._jobs.values() if job.session_id == session_id]
        return sorted(jobs, key=lambda job: job.created_at)

    async def search_entities(
        self,
        query: str,
        entity_type: EntityType | None = None,
        min_confidence: float | None = None,
    ) -> list[Entity]:
        """Find stored entities by case-insensitive name or context match.

        Args:
            query: Substring to look for in entity names and contexts.
            entity_type: Restrict to one entity type.
            min_confidence: Minimum entity confidence.

        Returns:
            Matching entities across all stored results.
        """
        needle = query.lower()
        matches = []
        for result in self._results.values():
            for entity in result.entities:
                if needle not in entity.name.lower() and needle not in entity.context.lower():
                    continue
                if entity_type is not None and entity.type != entity_type:
                    continue
                if min_confidence is not None and entity.confidence < min_confidence:
                    continue
                matches.append(entity)
        return matches

    async def processing_stats(self) -> dict[str, Any]:
        """Aggregate counts, cost and quality across stored jobs and results."""
        completed = [
            self._results[job_id]
            for job_id, job in self._jobs.items()
            if job.status == JobStatus.COMPLETED and job_id in self._results
        ]
        total_quality = sum(r.quality.extraction_confidence for r in completed)
        return {
            "total_jobs": len(self._jobs),
            "completed_jobs": len(completed),
            "failed_jobs": sum(1 for job in self._jobs.values() if job.status == JobStatus.FAILED),
            "total_entities": sum(len(r.entities) for r in self._results.values()),
            "total_relationships": sum(len(r.relationships) for r in self._results.values()),
            "total_cost": sum(r.processing.total_cost for r in self._results.values()),
            "average_quality": total_quality / len(completed) if completed else 0.0,
        }
