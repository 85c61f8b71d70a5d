"""Tests for the in-memory result store."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from llm_kg_pipeline.models import (
    ContentInput,
    Entity,
    EntityType,
    Job,
    JobStatus,
    ProcessingInfo,
    ProcessingResult,
    QualityMetrics,
)
from llm_kg_pipeline.storage import InMemoryResultStore, ResultStore


def _job(content_id: str, session_id: str = "s1") -> Job:
    return Job.from_content(ContentInput(session_id=session_id, content_id=content_id, text="text"))


def _result(cost: float, confidence: float, *entities: tuple[str, EntityType, float, str]) -> ProcessingResult:
    return ProcessingResult(
        entities=[Entity(name=n, type=t, confidence=c, context=ctx) for n, t, c, ctx in entities],
        quality=QualityMetrics(extraction_confidence=confidence),
        processing=ProcessingInfo(provider="openai", total_cost=cost),
    )


class TestInMemoryResultStore:
    """Tests for InMemoryResultStore."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryResultStore(), ResultStore)

    @pytest.mark.asyncio
    async def test_job_snapshots(self) -> None:
        """Test that later mutation of a live job does not change the saved copy."""
        store = InMemoryResultStore()
        job = _job("c1")

        await store.save_job(job)
        job.status = JobStatus.PROCESSING

        saved = await store.get_job(job.id)
        assert saved.status == JobStatus.PENDING

        await store.save_job(job)
        assert (await store.get_job(job.id)).status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_results(self) -> None:
        store = InMemoryResultStore()
        result = _result(0.01, 0.9)

        await store.put_result("job-1", result)

        assert await store.get_result("job-1") is result
        assert await store.get_result("job-2") is None
        assert await store.get_job("job-2") is None

    @pytest.mark.asyncio
    async def test_jobs_for_session(self) -> None:
        store = InMemoryResultStore()
        later = _job("c2")
        earlier = _job("c1")
        earlier.created_at = later.created_at - timedelta(seconds=5)
        other = _job("c3", session_id="s2")

        for job in (later, earlier, other):
            await store.save_job(job)

        jobs = await store.jobs_for_session("s1")
        assert [job.content_id for job in jobs] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_search_entities(self) -> None:
        store = InMemoryResultStore()
        await store.put_result(
            "job-1",
            _result(
                0.01,
                0.9,
                ("Acme Corp", EntityType.ORGANIZATION, 0.9, "Acme builds robots"),
                ("Jane Doe", EntityType.PERSON, 0.8, "works at Acme"),
            ),
        )
        await store.put_result(
            "job-2",
            _result(0.01, 0.9, ("Acme Labs", EntityType.ORGANIZATION, 0.6, "")),
        )

        assert {e.name for e in await store.search_entities("acme")} == {"Acme Corp", "Jane Doe", "Acme Labs"}
        assert {e.name for e in await store.search_entities("acme", EntityType.ORGANIZATION)} == {
            "Acme Corp",
            "Acme Labs",
        }
        assert {e.name for e in await store.search_entities("acme", min_confidence=0.85)} == {"Acme Corp"}
        assert await store.search_entities("globex") == []

    @pytest.mark.asyncio
    async def test_processing_stats(self) -> None:
        store = InMemoryResultStore()
        completed = _job("c1")
        completed.status = JobStatus.COMPLETED
        completed.completed_at = datetime.now(UTC)
        failed = _job("c2")
        failed.status = JobStatus.FAILED
        pending = _job("c3")

        for job in (completed, failed, pending):
            await store.save_job(job)
        await store.put_result(
            completed.id, _result(0.02, 0.8, ("Acme Corp", EntityType.ORGANIZATION, 0.8, ""))
        )
        await store.put_result(failed.id, ProcessingResult.failed("boom", total_cost=0.005))

        stats = await store.processing_stats()

        assert stats["total_jobs"] == 3
        assert stats["completed_jobs"] == 1
        assert stats["failed_jobs"] == 1
        assert stats["total_entities"] == 1
        assert stats["total_relationships"] == 0
        assert stats["total_cost"] == pytest.approx(0.025)
        assert stats["average_quality"] == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_processing_stats_empty(self) -> None:
        stats = await InMemoryResultStore().processing_stats()

        assert stats["total_jobs"] == 0
        assert stats["average_quality"] == 0.0
