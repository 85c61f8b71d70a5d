"""Pydantic models for the LLM knowledge extraction pipeline.

This package contains:
- Knowledge models (entities, relationships, processing results)
- Job models (content input, jobs, progress, cost summary)
"""

from llm_kg_pipeline.models.jobs import (
    ContentInput,
    CostSummary,
    Job,
    JobProgress,
    JobStatus,
    ProcessingOptions,
)
from llm_kg_pipeline.models.knowledge import (
    FAILED_PROVIDER,
    Entity,
    EntityType,
    ProcessingInfo,
    ProcessingResult,
    QualityMetrics,
    Relationship,
    RelationshipType,
    SourceSpan,
)

__all__ = [
    # Knowledge models
    "FAILED_PROVIDER",
    "Entity",
    "EntityType",
    "ProcessingInfo",
    "ProcessingResult",
    "QualityMetrics",
    "Relationship",
    "RelationshipType",
    "SourceSpan",
    # Job models
    "ContentInput",
    "CostSummary",
    "Job",
    "JobProgress",
    "JobStatus",
    "ProcessingOptions",
]
