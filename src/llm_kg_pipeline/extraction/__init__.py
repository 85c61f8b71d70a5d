"""LLM-driven knowledge extraction.

This package provides:
- Prompt templates and the entity/relationship type catalogs
- Structured parsing of model output
- Entity deduplication and relationship endpoint resolution
- Quality heuristics
- ExtractionOrchestrator, which runs the whole sequence for one content item
"""

from llm_kg_pipeline.extraction.dedup import deduplicate_entities, resolve_relationships
from llm_kg_pipeline.extraction.orchestrator import (
    ExtractionOrchestrator,
    OrchestratorConfig,
    ProcessingStats,
)
from llm_kg_pipeline.extraction.parsing import (
    ContentAnalysis,
    parse_analysis_payload,
    parse_entity_payload,
    parse_relationship_payload,
)
from llm_kg_pipeline.extraction.prompts import (
    CONTENT_ANALYSIS_PROMPT,
    ENTITY_EXTRACTION_PROMPT,
    RELATIONSHIP_DETECTION_PROMPT,
    PromptTemplate,
    format_entity_list,
    render_prompt,
)
from llm_kg_pipeline.extraction.quality import QualityConfig, compute_quality
from llm_kg_pipeline.extraction.schema import ENTITY_TYPES, RELATIONSHIP_TYPES

__all__ = [
    "CONTENT_ANALYSIS_PROMPT",
    "ENTITY_EXTRACTION_PROMPT",
    "ENTITY_TYPES",
    "RELATIONSHIP_DETECTION_PROMPT",
    "RELATIONSHIP_TYPES",
    "ContentAnalysis",
    "ExtractionOrchestrator",
    "OrchestratorConfig",
    "ProcessingStats",
    "PromptTemplate",
    "QualityConfig",
    "compute_quality",
    "deduplicate_entities",
    "format_entity_list",
    "parse_analysis_payload",
    "parse_entity_payload",
    "parse_relationship_payload",
    "render_prompt",
    "resolve_relationships",
]
