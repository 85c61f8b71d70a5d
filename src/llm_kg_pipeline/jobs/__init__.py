"""Background processing of extraction jobs."""

from llm_kg_pipeline.jobs.queue import JobQueue, QueueStats

__all__ = ["JobQueue", "QueueStats"]
