"""Knowledge graph fragment models produced by the extraction pipeline.

This module defines Pydantic models for extraction output:
- Entities: People, organizations, concepts, locations, technologies
- Relationships: Typed edges between entities of the same result
- ProcessingResult: The immutable aggregate handed to the result store
"""

from __future__ import annotations

from enum import Enum
from typing import Any
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field

FAILED_PROVIDER = "failed"


def new_entity_id() -> str:
    """Return a fresh, never-reused entity handle."""
    return f"ent_{uuid.uuid4().hex}"


def new_relationship_id() -> str:
    """Return a fresh, never-reused relationship handle."""
    return f"rel_{uuid.uuid4().hex}"


class EntityType(str, Enum):
    """Type of an extracted entity."""

    PERSON = "person"
    ORGANIZATION = "organization"
    CONCEPT = "concept"
    LOCATION = "location"
    TECHNOLOGY = "technology"


class RelationshipType(str, Enum):
    """Type of an extracted relationship."""

    WORKS_FOR = "works_for"
    COMPETES_WITH = "competes_with"
    INFLUENCES = "influences"
    RELATED_TO = "related_to"
    PART_OF = "part_of"
    LOCATED_IN = "located_in"


class SourceSpan(BaseModel):
    """Character offsets of an entity mention in the source text."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, description="Start offset (inclusive)")
    end: int = Field(ge=0, description="End offset (exclusive)")


class Entity(BaseModel):
    """An entity extracted from content.

    Attributes:
        id: Opaque handle assigned at creation.
        name: Entity name as it appears in the content.
        type: Entity classification.
        confidence: Model-reported confidence in [0, 1].
        context: Text span supporting the identification.
        source_span: Optional character offsets in the chunk.
        metadata: Free-form string-keyed attributes.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_entity_id, description="Entity handle")
    name: str = Field(min_length=1, description="Entity name")
    type: EntityType = Field(description="Entity type")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score")
    context: str = Field(default="", description="Supporting text span")
    source_span: SourceSpan | None = Field(default=None, description="Character offsets")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra attributes")

    @property
    def dedup_key(self) -> tuple[str, EntityType]:
        """Identity used for deduplication: (lowercased name, type)."""
        return (self.name.strip().lower(), self.type)


class Relationship(BaseModel):
    """A typed relationship between two entities of the same result.

    Attributes:
        id: Opaque handle assigned at creation.
        source_entity_id: Id of the source entity.
        target_entity_id: Id of the target entity.
        type: Relationship classification.
        confidence: Model-reported confidence in [0, 1].
        context: Text evidence for the relationship.
        bidirectional: Whether the relation holds in both directions.
        metadata: Free-form string-keyed attributes.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_relationship_id, description="Relationship handle")
    source_entity_id: str = Field(description="Source entity id")
    target_entity_id: str = Field(description="Target entity id")
    type: RelationshipType = Field(description="Relationship type")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score")
    context: str = Field(default="", description="Supporting text evidence")
    bidirectional: bool = Field(default=False, description="Holds in both directions")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra attributes")


class QualityMetrics(BaseModel):
    """Heuristic quality scores computed after extraction."""

    model_config = ConfigDict(frozen=True)

    extraction_confidence: float = 0.0
    completeness_score: float = 0.0
    content_preservation_ratio: float = 0.0


class ProcessingInfo(BaseModel):
    """Provenance and accounting for one processing run."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(description="Provider(s) used, or 'failed'")
    processing_time_seconds: float = 0.0
    total_cost: float = Field(default=0.0, description="USD spent by this run")
    retry_count: int = Field(default=0, description="Failed provider attempts")
    chunk_count: int = 0
    error: str | None = Field(default=None, description="Failure description")


class ProcessingResult(BaseModel):
    """Immutable aggregate result of extracting one content item."""

    model_config = ConfigDict(frozen=True)

    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    summary: str = ""
    key_insights: list[str] = Field(default_factory=list)
    quality: QualityMetrics = Field(default_factory=QualityMetrics)
    processing: ProcessingInfo

    @computed_field
    @property
    def is_failure(self) -> bool:
        """Whether extraction aborted before producing any entities."""
        return not self.entities and self.processing.provider == FAILED_PROVIDER

    @classmethod
    def failed(
        cls,
        error: str,
        *,
        processing_time_seconds: float = 0.0,
        total_cost: float = 0.0,
        retry_count: int = 0,
        chunk_count: int = 0,
    ) -> ProcessingResult:
        """Build the zero-valued result returned when extraction aborts.

        Args:
            error: Description of the failure.
            processing_time_seconds: Wall time spent before aborting.
            total_cost: Spend incurred before aborting.
            retry_count: Failed provider attempts before aborting.
            chunk_count: Number of chunks the content was split into.

        Returns:
            Result with empty collections and zeroed quality.
        """
        return cls(
            processing=ProcessingInfo(
                provider=FAILED_PROVIDER,
                processing_time_seconds=processing_time_seconds,
                total_cost=total_cost,
                retry_count=retry_count,
                chunk_count=chunk_count,
                error=error,
            ),
        )
