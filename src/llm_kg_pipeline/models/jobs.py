"""Job, content input and reporting models for the background job queue."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field

from llm_kg_pipeline.config import ENTITY_CONFIDENCE_THRESHOLD, MAX_CHUNKS


def _utcnow() -> datetime:
    return datetime.now(UTC)


def new_job_id() -> str:
    """Return a fresh job id."""
    return f"llm_job_{uuid.uuid4().hex}"


class JobStatus(str, Enum):
    """Lifecycle status of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions can happen."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ProcessingOptions(BaseModel):
    """Per-content processing options supplied by the producer."""

    model_config = ConfigDict(frozen=True)

    include_relationships: bool = True
    include_analysis: bool = True
    confidence_threshold: float = Field(default=ENTITY_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    max_chunks: int = Field(default=MAX_CHUNKS, ge=1)
    timeout_seconds: float | None = Field(
        default=None, gt=0, description="Overrides the queue's job timeout"
    )


class ContentInput(BaseModel):
    """Markdown content handed over by the scraping collaborator."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    content_id: str
    text: str
    title: str | None = None
    description: str | None = None
    url: str | None = None
    options: ProcessingOptions = Field(default_factory=ProcessingOptions)


class Job(BaseModel):
    """One unit of pipeline work for one content item in one session.

    Mutated only by the job queue's consumer loop (and ``cancel``).
    """

    id: str = Field(default_factory=new_job_id)
    session_id: str
    content_id: str
    content_ref: ContentInput
    status: JobStatus = JobStatus.PENDING
    options: ProcessingOptions = Field(default_factory=ProcessingOptions)
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    cancel_requested: bool = Field(default=False, exclude=True)

    @classmethod
    def from_content(cls, content: ContentInput) -> Job:
        """Create a pending job for a content item."""
        return cls(
            session_id=content.session_id,
            content_id=content.content_id,
            content_ref=content,
            options=content.options,
        )

    @computed_field
    @property
    def processing_time_seconds(self) -> float | None:
        """Wall time between start and completion, if both are known."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class JobProgress(BaseModel):
    """Pull-based progress report for one session."""

    session_id: str
    total_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    cancelled_jobs: int = 0
    pending_jobs: int = 0
    current_content_id: str | None = None
    estimated_time_remaining_seconds: float = 0.0

    @computed_field
    @property
    def completion_rate(self) -> float:
        """Percentage of jobs that reached a terminal state."""
        if self.total_jobs == 0:
            return 0.0
        done = self.completed_jobs + self.failed_jobs + self.cancelled_jobs
        return done / self.total_jobs * 100


class CostSummary(BaseModel):
    """Spend against the daily budget."""

    todays_spend: float
    daily_limit: float
    remaining_budget: float
